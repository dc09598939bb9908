"""
Ticket blueprint — 811 intake and the ticket lifecycle.

Endpoints:
    POST   /api/v1/tickets/import                — import an 811 ticket (coordinator)
    GET    /api/v1/tickets                       — paginated list, optional status filter
    GET    /api/v1/tickets/<id>                  — full ticket with children
    PATCH  /api/v1/tickets/<id>/status           — set status (manager or coordinator)
    POST   /api/v1/tickets/<id>/prefill-permit   — queue permit prefill (coordinator)
    GET    /api/v1/tickets/dashboard/summary     — headline counts + recent tickets
"""

from flask import Blueprint, g, jsonify, request

from app.middleware.permission_required import (
    require_any_role,
    require_manager_or_coordinator,
    require_permit_coordinator,
)
from app.services import ticket_service
from app.utils.errors import E, api_error
from app.utils.helpers import parse_pagination

ticket_bp = Blueprint("ticket_bp", __name__, url_prefix="/api/v1/tickets")


@ticket_bp.route("/import", methods=["POST"])
@require_permit_coordinator
def import_ticket():
    """
    Body: { "source": "...", "payload": { excavator_company, excavator_contact,
            work_location, work_start_date, work_end_date, work_description,
            utility_types, ticket_number?, emergency_contact? } }
    """
    data = request.get_json(silent=True) or {}
    source = data.get("source")
    payload = data.get("payload")
    if not isinstance(source, str) or not source or payload is None:
        return api_error(
            E.VALIDATION_REQUIRED, "source and payload are required",
            details={"required": ["source", "payload"]},
        )

    ticket, job = ticket_service.import_ticket(source, payload, g.organization_id, actor=g.current_user)
    return jsonify({
        "ticket_id": ticket.id,
        "ticket_number": ticket.ticket_number,
        "job_id": job.id,
    }), 201


@ticket_bp.route("", methods=["GET"])
@require_any_role
def list_tickets():
    """Query params: status, page (default 1), limit (default 20, max 100)."""
    page, limit = parse_pagination(request.args)
    result = ticket_service.list_tickets(
        g.organization_id,
        status=request.args.get("status") or None,
        page=page,
        limit=limit,
    )
    return jsonify(result), 200


@ticket_bp.route("/dashboard/summary", methods=["GET"])
@require_any_role
def dashboard_summary():
    return jsonify(ticket_service.dashboard_summary(g.organization_id)), 200


@ticket_bp.route("/<ticket_id>", methods=["GET"])
@require_any_role
def get_ticket(ticket_id):
    return jsonify({"ticket": ticket_service.get_ticket(g.organization_id, ticket_id)}), 200


@ticket_bp.route("/<ticket_id>/status", methods=["PATCH"])
@require_manager_or_coordinator
def update_status(ticket_id):
    """Body: { "status": "FIELD_WORK" }. Any status may follow any other."""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")

    ticket = ticket_service.update_ticket_status(g.organization_id, ticket_id, status, actor=g.current_user)
    return jsonify({"ticket": ticket.to_dict()}), 200


@ticket_bp.route("/<ticket_id>/prefill-permit", methods=["POST"])
@require_permit_coordinator
def prefill_permit(ticket_id):
    """Body: { "municipality": "...", "permit_type": "..." }"""
    data = request.get_json(silent=True) or {}
    job = ticket_service.request_permit_prefill(
        g.organization_id,
        ticket_id,
        data.get("municipality"),
        data.get("permit_type"),
        actor=g.current_user,
    )
    return jsonify({"message": "Permit prefill queued", "job": job.to_dict()}), 202
