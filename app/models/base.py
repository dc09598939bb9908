"""
OrgScopedModel — Abstract base class for organization-scoped models.

Every business table (tickets, permits, fees, inspections, evidence,
audit logs, job records) belongs to exactly one organization. Inheriting
from OrgScopedModel adds:
  - organization_id FK column with index
  - query_for_org(organization_id) classmethod
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import declared_attr

from app.models import db
from app.utils.helpers import as_utc


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    if isinstance(value, datetime):
        value = as_utc(value)
    return value.isoformat() if value else None


class OrgScopedModel(db.Model):
    """Abstract base for organization-scoped tables."""
    __abstract__ = True

    @declared_attr
    def organization_id(cls):
        return db.Column(
            db.String(36),
            db.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    @classmethod
    def query_for_org(cls, organization_id):
        """Return a query filtered by organization_id."""
        return cls.query.filter_by(organization_id=organization_id)

