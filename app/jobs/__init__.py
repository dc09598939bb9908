"""
Utility Permit Tracker
Deferred job pipeline backed by Celery.

``celery_app`` is configured from the Flask config by ``init_celery``.
Tasks run inside a Flask application context so they can use the
SQLAlchemy session like any request handler.

Worker:
    celery -A app.jobs.worker:celery_app worker -Q ticket-processing,permit-prefill,\
traffic-plan-generation,inspection-scheduling,closeout-processing
"""

import logging
import os

from celery import Celery, Task
from flask import has_app_context

logger = logging.getLogger(__name__)

BROKER_URL = os.environ.get("CELERY_BROKER_URL") or os.environ.get("REDIS_URL") or "redis://localhost:6379/0"


class FlaskTask(Task):
    """Celery task base that runs the body inside a Flask app context."""

    abstract = True

    def __call__(self, *args, **kwargs):
        if has_app_context():
            return super().__call__(*args, **kwargs)
        flask_app = getattr(self.app, "flask_app", None)
        if flask_app is None:
            raise RuntimeError("Celery app is not bound to a Flask app; call init_celery(app) first")
        with flask_app.app_context():
            return super().__call__(*args, **kwargs)


celery_app = Celery(
    "utility_permit_tracker",
    broker=BROKER_URL,
    backend=BROKER_URL,
    task_cls=FlaskTask,
    include=["app.jobs.tasks"],
)


def init_celery(app):
    """Bind ``celery_app`` to a Flask app and copy its CELERY_* settings."""
    celery_app.conf.update(
        broker_url=app.config["CELERY_BROKER_URL"],
        result_backend=app.config["CELERY_RESULT_BACKEND"],
        task_always_eager=app.config.get("CELERY_TASK_ALWAYS_EAGER", False),
        task_eager_propagates=False,
        task_acks_late=True,
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
    )
    celery_app.flask_app = app
    app.extensions["celery"] = celery_app
    logger.debug("Celery bound: broker=%s eager=%s",
                 app.config["CELERY_BROKER_URL"], celery_app.conf.task_always_eager)
    return celery_app
