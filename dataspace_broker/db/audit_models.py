"""
Audit Log Database Models.

Every data access decision and every mutation of an artifact's payload is
recorded with actor information and a small JSON snapshot of the relevant
bookkeeping.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Enum, Index, String, Text

from .base import Base
from .models import utc_now


audit_actor_kind_enum = Enum(
    "connector",
    "system",
    name="audit_actor_kind",
)

audit_action_enum = Enum(
    "data_served",
    "data_refreshed",
    "data_stored",
    "data_erased",
    "access_denied",
    "usage_logged",
    name="audit_action",
)


class AuditLogModel(Base):
    """Audit log entry for data access and enforcement actions."""

    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True)
    ts = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    # Who performed the action
    actor_kind = Column(audit_actor_kind_enum, nullable=False)
    actor_id = Column(String(2048), nullable=False, index=True)

    # What happened, and to which entity
    action = Column(audit_action_enum, nullable=False, index=True)
    entity_kind = Column(String(50), nullable=False)
    entity_id = Column(String(128), nullable=False, index=True)

    # Governing agreement, if the action was contract-bound
    agreement_id = Column(String(2048), nullable=True)

    details = Column(JSON, nullable=True)
    note = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_kind", "entity_id"),
        Index("ix_audit_log_entity_ts", "entity_kind", "entity_id", "ts"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "ts": self.ts.isoformat() if self.ts else None,
            "actor_kind": self.actor_kind,
            "actor_id": self.actor_id,
            "action": self.action,
            "entity_kind": self.entity_kind,
            "entity_id": self.entity_id,
            "agreement_id": self.agreement_id,
            "details": self.details,
            "note": self.note,
        }
