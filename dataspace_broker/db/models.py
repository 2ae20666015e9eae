"""
SQLAlchemy models for the Dataspace Broker.

An artifact owns exactly one data record. The data record is a tagged union
stored in a single table and discriminated by ``kind``:

- ``local``: the payload bytes live in this database
- ``remote``: the payload is fetched live from a backend URL on every serve
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base

URI_COLUMN_LENGTH = 2048


def generate_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# Agreement <-> Artifact (agreements govern the artifacts their rules target)
agreement_artifacts = Table(
    "agreement_artifacts",
    Base.metadata,
    Column("agreement_id", String(36), ForeignKey("agreements.id"), primary_key=True),
    Column("artifact_id", String(36), ForeignKey("artifacts.id"), primary_key=True),
)


class ArtifactDataModel(Base):
    """Underlying data of an artifact."""

    __tablename__ = "artifact_data"

    id = Column(String(36), primary_key=True, default=generate_id)
    kind = Column(String(16), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    modified_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __mapper_args__ = {"polymorphic_on": kind}

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "kind": self.kind}


class LocalDataModel(ArtifactDataModel):
    """Payload stored in the broker's own database.

    ``value`` is NULL until data has been stored once. An erased payload is an
    empty byte string.
    """

    value = Column(LargeBinary, nullable=True)

    __mapper_args__ = {"polymorphic_identity": "local"}

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["stored"] = self.value is not None
        return data


class RemoteDataModel(ArtifactDataModel):
    """Payload queried from an external HTTP backend on every serve."""

    access_url = Column(String(URI_COLUMN_LENGTH), nullable=True)
    username = Column(String(255), nullable=True)
    password = Column(String(255), nullable=True)

    __mapper_args__ = {"polymorphic_identity": "remote"}

    @property
    def has_credentials(self) -> bool:
        return self.username is not None or self.password is not None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["access_url"] = self.access_url
        data["has_credentials"] = self.has_credentials
        return data


class ArtifactModel(Base):
    """SQLAlchemy model for artifacts and their access bookkeeping."""

    __tablename__ = "artifacts"

    id = Column(String(36), primary_key=True, default=generate_id)
    remote_id = Column(String(URI_COLUMN_LENGTH), nullable=True, index=True)
    remote_address = Column(String(URI_COLUMN_LENGTH), nullable=True)
    title = Column(String(512), nullable=False, default="")

    num_accessed = Column(Integer, nullable=False, default=0)
    automated_download = Column(Boolean, nullable=False, default=False)

    # Always consistent with the last stored payload
    byte_size = Column(BigInteger, nullable=False, default=0)
    check_sum = Column(BigInteger, nullable=False, default=0)

    data_id = Column(String(36), ForeignKey("artifact_data.id"), nullable=False)
    data = relationship("ArtifactDataModel", lazy="joined")

    agreements = relationship(
        "AgreementModel",
        secondary=agreement_artifacts,
        back_populates="artifacts",
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    modified_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def increment_access_counter(self) -> None:
        self.num_accessed = (self.num_accessed or 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "remote_id": self.remote_id,
            "remote_address": self.remote_address,
            "title": self.title,
            "num_accessed": self.num_accessed,
            "automated_download": self.automated_download,
            "byte_size": self.byte_size,
            "check_sum": self.check_sum,
            "data": self.data.to_dict() if self.data else None,
            "created_at": _iso(self.created_at),
            "modified_at": _iso(self.modified_at),
        }


class AgreementModel(Base):
    """SQLAlchemy model for stored contract agreements."""

    __tablename__ = "agreements"

    id = Column(String(36), primary_key=True, default=generate_id)
    # Provider-side identifier; NULL for agreements issued by this connector
    remote_id = Column(String(URI_COLUMN_LENGTH), nullable=True, index=True)
    value = Column(Text, nullable=False)
    confirmed = Column(Boolean, nullable=False, default=False)

    artifacts = relationship(
        "ArtifactModel",
        secondary=agreement_artifacts,
        back_populates="agreements",
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (Index("ix_agreements_created_at", "created_at"),)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "remote_id": self.remote_id,
            "confirmed": self.confirmed,
            "artifacts": [artifact.id for artifact in self.artifacts],
            "created_at": _iso(self.created_at),
        }
