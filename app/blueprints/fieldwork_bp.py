"""
Field work blueprint — traffic plans, inspections, evidence, closeouts.

Request endpoints queue a job and answer 202 with its envelope; the
workers own the actual generation / scheduling / packaging.

Endpoints:
    POST /api/v1/traffic-plans/generate   — queue traffic-plan generation
    GET  /api/v1/traffic-plans
    POST /api/v1/inspections/schedule     — queue inspection scheduling
    GET  /api/v1/inspections
    GET  /api/v1/evidence
    POST /api/v1/closeouts/submit         — queue closeout processing
    GET  /api/v1/closeouts
"""

from flask import Blueprint, g, jsonify, request

from app.middleware.permission_required import require_any_role
from app.services import fieldwork_service

fieldwork_bp = Blueprint("fieldwork_bp", __name__, url_prefix="/api/v1")


def _ticket_filter():
    return request.args.get("ticket_id") or None


def _queued(job):
    return jsonify({"message": "Job queued", "job": job.to_dict()}), 202


# ═══════════════════════════════════════════════════════════════
# Traffic plans
# ═══════════════════════════════════════════════════════════════
@fieldwork_bp.route("/traffic-plans/generate", methods=["POST"])
@require_any_role
def generate_traffic_plan():
    """Body: { "ticket_id", "template_id" }"""
    data = request.get_json(silent=True) or {}
    return _queued(fieldwork_service.request_traffic_plan(g.organization_id, data, actor=g.current_user))


@fieldwork_bp.route("/traffic-plans", methods=["GET"])
@require_any_role
def list_traffic_plans():
    plans = fieldwork_service.list_traffic_plans(g.organization_id, ticket_id=_ticket_filter())
    return jsonify({"traffic_plans": plans, "total": len(plans)}), 200


# ═══════════════════════════════════════════════════════════════
# Inspections
# ═══════════════════════════════════════════════════════════════
@fieldwork_bp.route("/inspections/schedule", methods=["POST"])
@require_any_role
def schedule_inspection():
    """Body: { "ticket_id", "inspection_type", "preferred_date", "permit_id"? }"""
    data = request.get_json(silent=True) or {}
    return _queued(fieldwork_service.request_inspection(g.organization_id, data, actor=g.current_user))


@fieldwork_bp.route("/inspections", methods=["GET"])
@require_any_role
def list_inspections():
    inspections = fieldwork_service.list_inspections(
        g.organization_id,
        ticket_id=_ticket_filter(),
        status=request.args.get("status") or None,
    )
    return jsonify({"inspections": inspections, "total": len(inspections)}), 200


# ═══════════════════════════════════════════════════════════════
# Evidence
# ═══════════════════════════════════════════════════════════════
@fieldwork_bp.route("/evidence", methods=["GET"])
@require_any_role
def list_evidence():
    evidence = fieldwork_service.list_evidence(
        g.organization_id,
        ticket_id=_ticket_filter(),
        evidence_type=request.args.get("type") or None,
    )
    return jsonify({"evidence": evidence, "total": len(evidence)}), 200


# ═══════════════════════════════════════════════════════════════
# Closeouts
# ═══════════════════════════════════════════════════════════════
@fieldwork_bp.route("/closeouts/submit", methods=["POST"])
@require_any_role
def submit_closeout():
    """Body: { "ticket_id" }"""
    data = request.get_json(silent=True) or {}
    return _queued(fieldwork_service.request_closeout(g.organization_id, data, actor=g.current_user))


@fieldwork_bp.route("/closeouts", methods=["GET"])
@require_any_role
def list_closeouts():
    closeouts = fieldwork_service.list_closeouts(g.organization_id, ticket_id=_ticket_filter())
    return jsonify({"closeouts": closeouts, "total": len(closeouts)}), 200
