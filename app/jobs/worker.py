"""
Celery worker entry point.

Usage:
    celery -A app.jobs.worker:celery_app worker --loglevel=info \
        -Q ticket-processing,permit-prefill,traffic-plan-generation,inspection-scheduling,closeout-processing
"""

from app import create_app
from app.jobs import celery_app  # noqa: F401

flask_app = create_app()
