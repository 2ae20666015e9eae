"""
Audit Log Service.

Records data access decisions and payload mutations so that usage of every
artifact can be reconstructed after the fact.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from .audit_models import AuditLogModel


class AuditService:
    """Service for managing audit log entries.

    Usage:
        audit = AuditService(db_session)
        audit.record("data_served", artifact.id, actor_id=connector_id)
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        entity_id: str,
        entity_kind: str = "Artifact",
        actor_kind: str = "connector",
        actor_id: str = "unknown",
        agreement_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        note: Optional[str] = None,
        commit: bool = True,
    ) -> AuditLogModel:
        """Record an audit entry.

        Args:
            action: One of the audit actions (e.g. "data_served", "data_erased")
            entity_id: ID of the affected entity
            entity_kind: Type of the affected entity
            actor_kind: "connector" for request-driven actions, "system" for the scheduler
            actor_id: Connector id or worker id
            agreement_id: Remote id of the governing agreement, if any
            details: JSON snapshot of relevant bookkeeping
            note: Optional human-readable note
            commit: When False the entry joins the caller's open transaction

        Returns:
            The created AuditLogModel
        """
        entry = AuditLogModel(
            id=str(uuid.uuid4()),
            ts=datetime.now(timezone.utc),
            actor_kind=actor_kind,
            actor_id=actor_id,
            action=action,
            entity_kind=entity_kind,
            entity_id=entity_id,
            agreement_id=agreement_id,
            details=details,
            note=note,
        )

        self.db.add(entry)
        if commit:
            self.db.commit()
            self.db.refresh(entry)
        return entry

    def query_by_entity(
        self, entity_id: str, entity_kind: str = "Artifact", limit: int = 100
    ) -> List[AuditLogModel]:
        """Get audit entries for an entity, newest first."""
        return (
            self.db.query(AuditLogModel)
            .filter(AuditLogModel.entity_kind == entity_kind)
            .filter(AuditLogModel.entity_id == entity_id)
            .order_by(desc(AuditLogModel.ts))
            .limit(limit)
            .all()
        )

    def query_by_action(self, action: str, limit: int = 100) -> List[AuditLogModel]:
        """Get audit entries for an action, newest first."""
        return (
            self.db.query(AuditLogModel)
            .filter(AuditLogModel.action == action)
            .order_by(desc(AuditLogModel.ts))
            .limit(limit)
            .all()
        )
