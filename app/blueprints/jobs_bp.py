"""
Jobs blueprint — status of deferred work.

Endpoints:
    GET  /api/v1/jobs          — recent jobs; filters: queue, status, ticket_id
    GET  /api/v1/jobs/<id>     — single job envelope
"""

from flask import Blueprint, g, jsonify, request

from app.middleware.permission_required import require_any_role
from app.services import job_service

jobs_bp = Blueprint("jobs_bp", __name__, url_prefix="/api/v1/jobs")


@jobs_bp.route("", methods=["GET"])
@require_any_role
def list_jobs():
    limit = min(500, max(1, request.args.get("limit", 100, type=int) or 100))
    jobs = job_service.list_jobs(
        g.organization_id,
        queue=request.args.get("queue") or None,
        status=request.args.get("status") or None,
        ticket_id=request.args.get("ticket_id") or None,
        limit=limit,
    )
    return jsonify({"jobs": jobs, "total": len(jobs)}), 200


@jobs_bp.route("/<job_id>", methods=["GET"])
@require_any_role
def get_job(job_id):
    return jsonify({"job": job_service.get_job(g.organization_id, job_id)}), 200
