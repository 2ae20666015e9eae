"""
Database package for the Dataspace Broker.
"""

from .audit_models import AuditLogModel
from .audit_service import AuditService
from .base import Base, get_engine, get_session_local, init_database
from .models import (
    AgreementModel,
    ArtifactDataModel,
    ArtifactModel,
    LocalDataModel,
    RemoteDataModel,
)
from .services import AgreementService, ArtifactService, compute_checksum

__all__ = [
    "Base",
    "get_engine",
    "get_session_local",
    "init_database",
    "AgreementModel",
    "ArtifactDataModel",
    "ArtifactModel",
    "LocalDataModel",
    "RemoteDataModel",
    "AuditLogModel",
    "AuditService",
    "AgreementService",
    "ArtifactService",
    "compute_checksum",
]
