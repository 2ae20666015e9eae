"""
Database services for the Dataspace Broker.

These are the repository lookups the data broker and the scheduled removal
loop consume. Creation helpers exist for the registration pipeline and tests;
nothing here deletes artifact or agreement rows.
"""

import zlib
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from .models import (
    AgreementModel,
    ArtifactModel,
    LocalDataModel,
    RemoteDataModel,
    agreement_artifacts,
)


def compute_checksum(data: bytes) -> int:
    """CRC-32 of a payload as an unsigned integer."""
    return zlib.crc32(data) & 0xFFFFFFFF


class ArtifactService:
    """Service for managing artifacts in the database."""

    def __init__(self, db: Session):
        self.db = db

    def create_artifact(
        self,
        title: str,
        remote_id: Optional[str] = None,
        remote_address: Optional[str] = None,
        automated_download: bool = False,
        value: Optional[bytes] = None,
        access_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> ArtifactModel:
        """Create an artifact backed by local bytes or, if access_url is set, a remote backend."""
        if access_url is not None:
            data = RemoteDataModel(
                access_url=access_url, username=username, password=password
            )
        else:
            data = LocalDataModel(value=value)

        db_artifact = ArtifactModel(
            title=title,
            remote_id=remote_id,
            remote_address=remote_address,
            automated_download=automated_download,
            num_accessed=0,
            byte_size=len(value) if value is not None else 0,
            check_sum=compute_checksum(value) if value is not None else 0,
            data=data,
        )

        self.db.add(db_artifact)
        self.db.commit()
        self.db.refresh(db_artifact)
        return db_artifact

    def get_artifact(self, artifact_id: str) -> Optional[ArtifactModel]:
        """Get an artifact by ID."""
        return (
            self.db.query(ArtifactModel).filter(ArtifactModel.id == artifact_id).first()
        )

    def get_artifacts(self, limit: int = 100, offset: int = 0) -> List[ArtifactModel]:
        """Get artifacts, oldest first."""
        return (
            self.db.query(ArtifactModel)
            .order_by(ArtifactModel.created_at, ArtifactModel.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

    def identify_by_remote_id(self, remote_id: str) -> Optional[str]:
        """Resolve a provider-side artifact identifier to the local artifact id."""
        artifact = (
            self.db.query(ArtifactModel.id)
            .filter(ArtifactModel.remote_id == remote_id)
            .order_by(ArtifactModel.created_at, ArtifactModel.id)
            .first()
        )
        return artifact.id if artifact else None

    def get_all_by_agreement(self, agreement_id: str) -> List[ArtifactModel]:
        """Get all artifacts referenced by an agreement."""
        return (
            self.db.query(ArtifactModel)
            .join(
                agreement_artifacts,
                agreement_artifacts.c.artifact_id == ArtifactModel.id,
            )
            .filter(agreement_artifacts.c.agreement_id == agreement_id)
            .order_by(ArtifactModel.created_at, ArtifactModel.id)
            .all()
        )


class AgreementService:
    """Service for reading stored agreements."""

    def __init__(self, db: Session):
        self.db = db

    def create_agreement(
        self,
        value: str,
        remote_id: Optional[str] = None,
        artifacts: Iterable[ArtifactModel] = (),
        confirmed: bool = True,
    ) -> AgreementModel:
        """Store an agreement and link it to the artifacts it governs."""
        db_agreement = AgreementModel(
            value=value,
            remote_id=remote_id,
            confirmed=confirmed,
            artifacts=list(artifacts),
        )

        self.db.add(db_agreement)
        self.db.commit()
        self.db.refresh(db_agreement)
        return db_agreement

    def get_agreement(self, agreement_id: str) -> Optional[AgreementModel]:
        """Get an agreement by ID."""
        return (
            self.db.query(AgreementModel)
            .filter(AgreementModel.id == agreement_id)
            .first()
        )

    def get_agreement_by_remote_id(self, remote_id: str) -> Optional[AgreementModel]:
        """Get an agreement by the provider's identifier."""
        return (
            self.db.query(AgreementModel)
            .filter(AgreementModel.remote_id == remote_id)
            .order_by(AgreementModel.created_at, AgreementModel.id)
            .first()
        )

    def get_agreements(self) -> List[AgreementModel]:
        """Get all agreements, oldest first."""
        return (
            self.db.query(AgreementModel)
            .order_by(AgreementModel.created_at, AgreementModel.id)
            .all()
        )

    def find_remote_origin_agreements(self, artifact_id: str) -> List[AgreementModel]:
        """Get the provider-issued agreements governing an artifact.

        Ordered by creation time ascending, ties broken by id.
        """
        return (
            self.db.query(AgreementModel)
            .join(
                agreement_artifacts,
                agreement_artifacts.c.agreement_id == AgreementModel.id,
            )
            .filter(agreement_artifacts.c.artifact_id == artifact_id)
            .filter(AgreementModel.remote_id.isnot(None))
            .order_by(AgreementModel.created_at, AgreementModel.id)
            .all()
        )
