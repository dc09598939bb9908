"""
Permit blueprint — municipal permit applications.

Endpoints:
    POST   /api/v1/permits/prefill        — draft a permit from a ticket (coordinator)
    GET    /api/v1/permits                — list, optional ticket_id / status filters
    GET    /api/v1/permits/<id>           — single permit with ticket
    PATCH  /api/v1/permits/<id>           — merge application data (coordinator)
    POST   /api/v1/permits/<id>/submit    — mock municipal submission (coordinator)
"""

from flask import Blueprint, g, jsonify, request

from app.middleware.permission_required import require_any_role, require_permit_coordinator
from app.services import permit_service

permit_bp = Blueprint("permit_bp", __name__, url_prefix="/api/v1/permits")


@permit_bp.route("/prefill", methods=["POST"])
@require_permit_coordinator
def prefill():
    """Body: { "ticket_id", "municipality", "permit_type" }"""
    data = request.get_json(silent=True) or {}
    permit = permit_service.prefill_permit(
        g.organization_id,
        data.get("ticket_id"),
        data.get("municipality"),
        data.get("permit_type"),
        actor=g.current_user,
    )
    return jsonify({"permit": permit.to_dict()}), 201


@permit_bp.route("", methods=["GET"])
@require_any_role
def list_permits():
    permits = permit_service.list_permits(
        g.organization_id,
        ticket_id=request.args.get("ticket_id") or None,
        status=request.args.get("status") or None,
    )
    return jsonify({"permits": permits, "total": len(permits)}), 200


@permit_bp.route("/<permit_id>", methods=["GET"])
@require_any_role
def get_permit(permit_id):
    return jsonify({"permit": permit_service.get_permit(g.organization_id, permit_id)}), 200


@permit_bp.route("/<permit_id>", methods=["PATCH"])
@require_permit_coordinator
def update_permit(permit_id):
    """Body: application fields to merge into application_data."""
    changes = request.get_json(silent=True)
    permit = permit_service.update_permit_application(
        g.organization_id, permit_id, changes, actor=g.current_user,
    )
    return jsonify({"permit": permit.to_dict()}), 200


@permit_bp.route("/<permit_id>/submit", methods=["POST"])
@require_permit_coordinator
def submit(permit_id):
    permit = permit_service.submit_permit(g.organization_id, permit_id, actor=g.current_user)
    return jsonify({
        "message": "Permit submitted",
        "permit": permit.to_dict(),
    }), 200
