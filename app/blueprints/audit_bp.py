"""
Audit blueprint — read side of the compliance trail.

Endpoints:
    GET  /api/v1/audit/<ticket_id>              — ticket history, newest first
    GET  /api/v1/audit/<ticket_id>/export       — full audit package (manager or coordinator)
    GET  /api/v1/audit/organization/summary     — organization activity (compliance manager)
"""

from flask import Blueprint, g, jsonify

from app.middleware.permission_required import (
    require_any_role,
    require_compliance_manager,
    require_manager_or_coordinator,
)
from app.services import audit_service

audit_bp = Blueprint("audit_bp", __name__, url_prefix="/api/v1/audit")


@audit_bp.route("/organization/summary", methods=["GET"])
@require_compliance_manager
def organization_summary():
    return jsonify(audit_service.organization_summary(g.organization_id)), 200


@audit_bp.route("/<ticket_id>", methods=["GET"])
@require_any_role
def ticket_trail(ticket_id):
    logs = audit_service.ticket_audit_trail(g.organization_id, ticket_id)
    return jsonify({"audit_logs": logs, "total": len(logs)}), 200


@audit_bp.route("/<ticket_id>/export", methods=["GET"])
@require_manager_or_coordinator
def export_package(ticket_id):
    package = audit_service.build_audit_package(g.organization_id, ticket_id, g.current_user)
    response = jsonify(package)
    response.headers["Content-Disposition"] = (
        f'attachment; filename="audit-{package["ticket"]["ticket_number"]}.json"'
    )
    return response, 200
