"""
Artifact data broker.

Serves an artifact's data under the agreements that govern it:

1. get_data: the caller does not know which agreement applies. All
   provider-issued agreements linked to the artifact are tried in creation
   order; the first one that is allowed and returns data wins. If every one
   is denied, the last denial is raised. An artifact without such agreements
   is served without policy checks; only one with a provider address is
   ever refreshed.
2. get_data_by_agreement: verify the named agreement's rules, refresh the
   cached payload from the provider when required, then serve. Without a
   named agreement it behaves like get_data; results are never combined
   across agreements.

Refresh is required when force_download is True, or when it is unset and
either nothing has been cached yet or the artifact is set to automated
download. It never happens when force_download is False.

set_data is the only write primitive for payloads. It recomputes byte size
and checksum in the same transaction as the payload and only works for
locally stored data.
"""

import io
from datetime import datetime, timezone
from typing import BinaryIO, Callable, List, Optional, Union

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..contracts.rules import extract_rules_for_target
from ..contracts.schema import Rule
from ..db.audit_service import AuditService
from ..db.models import ArtifactModel, LocalDataModel, RemoteDataModel
from ..db.services import AgreementService, ArtifactService, compute_checksum
from ..exceptions import (
    DataTransportError,
    PolicyRestrictionError,
    ResourceNotFoundError,
    StorageError,
    UnsupportedOperationError,
)
from ..policy.verifier import AccessSubject, ArtifactView, PolicyVerifier
from ..schemas.retrieval import QueryInput, RetrievalInformation
from .http import ArtifactRetriever, HttpService

logger = structlog.get_logger()

DataInput = Union[bytes, BinaryIO]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ArtifactDataBroker:
    """Policy-gated access to artifact data."""

    def __init__(
        self,
        db: Session,
        http_service: Optional[HttpService] = None,
        connector_id: Optional[str] = None,
        security_profile: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.artifacts = ArtifactService(db)
        self.agreements = AgreementService(db)
        self.audit = AuditService(db)
        self._http_service = http_service
        self.connector_id = connector_id or self.settings.connector_id
        self.security_profile = security_profile or self.settings.security_profile
        self.clock = clock or _utc_now

    @property
    def http_service(self) -> HttpService:
        if self._http_service is None:
            self._http_service = HttpService(timeout=self.settings.http_timeout_seconds)
        return self._http_service

    # ------------------------------------------------------------------
    # Access entry points
    # ------------------------------------------------------------------

    def get_data(
        self,
        verifier: PolicyVerifier,
        retriever: ArtifactRetriever,
        artifact_id: str,
        query_input: Optional[QueryInput] = None,
        force_download: Optional[bool] = None,
    ) -> BinaryIO:
        """Get an artifact's data, trying every agreement that governs it.

        Raises:
            ResourceNotFoundError: If the artifact does not exist
            PolicyRestrictionError: If every governing agreement denies access
            DataTransportError: If a required fetch fails
            StorageError: If fetched data cannot be stored
        """
        agreements = self.agreements.find_remote_origin_agreements(artifact_id)
        if agreements:
            denial = PolicyRestrictionError()
            for agreement in agreements:
                information = RetrievalInformation(
                    transfer_contract=agreement.remote_id,
                    force_download=force_download,
                    query_input=query_input,
                )
                try:
                    return self.get_data_by_agreement(
                        verifier, retriever, artifact_id, information
                    )
                except PolicyRestrictionError as e:
                    logger.debug(
                        "agreement_access_denied",
                        artifact_id=artifact_id,
                        agreement_id=agreement.remote_id,
                    )
                    denial = e

            logger.debug("artifact_access_forbidden", artifact_id=artifact_id)
            raise denial

        artifact = self._get_artifact(artifact_id)
        if not artifact.remote_address:
            # Offered by this connector: nothing upstream to refresh from.
            return self._serve(artifact, query_input)

        # Provider-origin artifact without a recorded agreement.
        information = RetrievalInformation(
            force_download=force_download, query_input=query_input
        )
        return self._deliver(artifact, retriever, information)

    def get_data_by_agreement(
        self,
        verifier: PolicyVerifier,
        retriever: ArtifactRetriever,
        artifact_id: str,
        information: RetrievalInformation,
    ) -> BinaryIO:
        """Get an artifact's data under one agreement.

        Without a transfer contract every governing agreement is tried on its
        own, exactly as in get_data.

        Raises:
            ResourceNotFoundError: If the artifact or agreement does not exist
            PolicyRestrictionError: If the verifier denies access
            DataTransportError: If a required fetch fails
            StorageError: If fetched data cannot be stored
        """
        if information.transfer_contract is None:
            return self.get_data(
                verifier,
                retriever,
                artifact_id,
                information.query_input,
                information.force_download,
            )

        artifact = self._get_artifact(artifact_id)
        subject = self._build_subject(artifact, information.transfer_contract)

        decision = verifier.check(subject)
        if not decision.allowed:
            logger.info(
                "access_denied",
                artifact_id=artifact_id,
                agreement_id=information.transfer_contract,
                reason=decision.reason,
            )
            self.audit.record(
                "access_denied",
                artifact.id,
                actor_id=self.connector_id,
                agreement_id=information.transfer_contract,
                note=decision.reason,
            )
            raise PolicyRestrictionError(
                reason=decision.reason, agreement_id=information.transfer_contract
            )

        return self._deliver(artifact, retriever, information)

    # ------------------------------------------------------------------
    # Mutation primitive
    # ------------------------------------------------------------------

    def set_data(
        self,
        artifact_id: str,
        data: DataInput,
        audit_action: str = "data_stored",
        actor_kind: str = "connector",
        actor_id: Optional[str] = None,
    ) -> BinaryIO:
        """Replace an artifact's payload and return a stream of the stored bytes.

        Raises:
            ResourceNotFoundError: If the artifact does not exist
            UnsupportedOperationError: If the artifact's data lives in a remote backend
            StorageError: If the payload cannot be stored
        """
        artifact = self._get_artifact(artifact_id)
        return self._store(
            artifact,
            self._local_data(artifact),
            data,
            count_access=False,
            audit_action=audit_action,
            actor_kind=actor_kind,
            actor_id=actor_id,
        )

    # ------------------------------------------------------------------
    # Usage logging
    # ------------------------------------------------------------------

    def record_usage(self, subject: AccessSubject, rule: Optional[Rule] = None) -> None:
        """Audit an access under a logging or notification rule.

        Matches the sink signature of LogOnlyVerifier, so the broker can be
        handed to get_verifier(log_sink=broker.record_usage).
        """
        details = None
        if rule is not None:
            details = {
                "rule_id": rule.id,
                "pattern": rule.pattern.value,
                "notify_endpoint": rule.constraint.notify_endpoint,
            }
        self.audit.record(
            "usage_logged",
            subject.artifact.id,
            actor_id=subject.connector_id or self.connector_id,
            agreement_id=subject.agreement_id,
            details=details,
            commit=False,
        )
        self._commit(subject.artifact.id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_all_by_agreement(self, agreement_id: str) -> List[ArtifactModel]:
        """Get all artifacts referenced in an agreement."""
        return self.artifacts.get_all_by_agreement(agreement_id)

    def identify_by_remote_id(self, remote_id: str) -> Optional[str]:
        """Resolve a provider-side artifact identifier to a local artifact id."""
        return self.artifacts.identify_by_remote_id(remote_id)

    def should_download(
        self, artifact: ArtifactModel, force_download: Optional[bool]
    ) -> bool:
        """Whether the artifact's data has to be fetched from its provider."""
        if force_download is not None:
            return force_download
        return not self._has_cached_data(artifact) or bool(artifact.automated_download)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_artifact(self, artifact_id: str) -> ArtifactModel:
        artifact = self.artifacts.get_artifact(artifact_id)
        if artifact is None:
            raise ResourceNotFoundError("Artifact", artifact_id)
        return artifact

    def _build_subject(
        self, artifact: ArtifactModel, transfer_contract: str
    ) -> AccessSubject:
        agreement = self.agreements.get_agreement_by_remote_id(transfer_contract)
        if agreement is None:
            raise ResourceNotFoundError("Agreement", transfer_contract)

        return AccessSubject(
            artifact=ArtifactView.from_model(artifact),
            rules=tuple(extract_rules_for_target(agreement.value, artifact.remote_id)),
            agreement_id=transfer_contract,
            connector_id=self.connector_id,
            security_profile=self.security_profile,
            now=self.clock(),
        )

    def _deliver(
        self,
        artifact: ArtifactModel,
        retriever: ArtifactRetriever,
        information: RetrievalInformation,
    ) -> BinaryIO:
        """Refresh the payload from the provider if required, otherwise serve it."""
        if not self.should_download(artifact, information.force_download):
            return self._serve(
                artifact,
                information.query_input,
                agreement_id=information.transfer_contract,
            )

        local = self._local_data(artifact)
        # Blocks the calling thread; timeouts belong to the retriever.
        stream = retriever.retrieve(
            artifact.id,
            artifact.remote_address,
            information.transfer_contract,
            information.query_input,
        )
        return self._store(
            artifact,
            local,
            stream,
            count_access=True,
            audit_action="data_refreshed",
            agreement_id=information.transfer_contract,
        )

    @staticmethod
    def _local_data(artifact: ArtifactModel) -> LocalDataModel:
        data = artifact.data
        if isinstance(data, RemoteDataModel):
            raise UnsupportedOperationError(
                f"Artifact '{artifact.id}' is backed by a remote data source; "
                "pushing data to it is not supported."
            )
        if not isinstance(data, LocalDataModel):
            raise UnsupportedOperationError(f"Unknown data kind '{data.kind}'.")
        return data

    @staticmethod
    def _has_cached_data(artifact: ArtifactModel) -> bool:
        data = artifact.data
        if isinstance(data, LocalDataModel):
            return data.value is not None
        if isinstance(data, RemoteDataModel):
            # Queried live on every serve, never cached.
            return True
        raise UnsupportedOperationError(f"Unknown data kind '{data.kind}'.")

    def _serve(
        self,
        artifact: ArtifactModel,
        query_input: Optional[QueryInput],
        agreement_id: Optional[str] = None,
    ) -> BinaryIO:
        """Serve the current data without policy enforcement."""
        data = artifact.data
        if isinstance(data, LocalDataModel):
            stream = io.BytesIO(data.value or b"")
        elif isinstance(data, RemoteDataModel):
            stream = self._fetch_remote(artifact, data, query_input)
        else:
            raise UnsupportedOperationError(f"Unknown data kind '{data.kind}'.")

        artifact.increment_access_counter()
        self.audit.record(
            "data_served",
            artifact.id,
            actor_id=self.connector_id,
            agreement_id=agreement_id,
            details={"kind": data.kind, "num_accessed": artifact.num_accessed},
            commit=False,
        )
        self._commit(artifact.id)

        logger.info(
            "data_served",
            artifact_id=artifact.id,
            kind=data.kind,
            num_accessed=artifact.num_accessed,
        )
        return stream

    def _fetch_remote(
        self,
        artifact: ArtifactModel,
        data: RemoteDataModel,
        query_input: Optional[QueryInput],
    ) -> BinaryIO:
        if not data.access_url:
            raise DataTransportError(
                f"Artifact '{artifact.id}' has no backend access URL."
            )

        credentials = None
        if data.has_credentials:
            credentials = (data.username, data.password)
        return self.http_service.get(data.access_url, query_input, credentials)

    def _store(
        self,
        artifact: ArtifactModel,
        local: LocalDataModel,
        data: DataInput,
        count_access: bool,
        audit_action: str,
        agreement_id: Optional[str] = None,
        actor_kind: str = "connector",
        actor_id: Optional[str] = None,
    ) -> BinaryIO:
        payload = self._read_all(artifact.id, data)

        # Payload, size and checksum are committed together or not at all.
        local.value = payload
        artifact.byte_size = len(payload)
        artifact.check_sum = compute_checksum(payload)
        if count_access:
            artifact.increment_access_counter()

        self.audit.record(
            audit_action,
            artifact.id,
            actor_kind=actor_kind,
            actor_id=actor_id or self.connector_id,
            agreement_id=agreement_id,
            details={"byte_size": artifact.byte_size, "check_sum": artifact.check_sum},
            commit=False,
        )
        self._commit(artifact.id)

        logger.info(
            audit_action,
            artifact_id=artifact.id,
            byte_size=artifact.byte_size,
            check_sum=artifact.check_sum,
        )
        return io.BytesIO(payload)

    @staticmethod
    def _read_all(artifact_id: str, data: DataInput) -> bytes:
        if isinstance(data, (bytes, bytearray)):
            return bytes(data)
        try:
            return data.read()
        except OSError as e:
            raise DataTransportError(
                f"Failed to read data stream for artifact '{artifact_id}'."
            ) from e
        finally:
            data.close()

    def _commit(self, artifact_id: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("data_store_failed", artifact_id=artifact_id, error=str(e))
            raise StorageError("Failed to store data.") from e
