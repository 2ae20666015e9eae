"""
Error taxonomy for the Dataspace Broker.

Every error carries a stable code for programmatic handling and a
human-readable message. Request-path errors propagate to the caller;
the scheduled removal loop catches and logs them.
"""

from typing import Any, Dict, Optional


class BrokerError(Exception):
    """
    Base class for all broker errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    code = "BROKER_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": self.code.lower(),
            "code": self.code,
            "message": self.message,
        }


class ResourceNotFoundError(BrokerError):
    """Raised when an artifact or agreement does not exist."""

    code = "NOT_FOUND"

    def __init__(self, kind: str, identifier: Any):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' does not exist")


class PolicyRestrictionError(BrokerError):
    """Raised when a verifier denies access to an artifact's data."""

    code = "POLICY_RESTRICTION"

    def __init__(
        self,
        message: str = "Data access denied by usage policy.",
        reason: Optional[str] = None,
        agreement_id: Optional[str] = None,
    ):
        self.reason = reason
        self.agreement_id = agreement_id
        super().__init__(message if reason is None else f"{message} {reason}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        data["agreement_id"] = self.agreement_id
        return data


class DataTransportError(BrokerError):
    """Raised when a network fetch from a provider or backend fails."""

    code = "TRANSPORT_ERROR"


class StorageError(BrokerError):
    """Raised when the artifact store cannot persist data."""

    code = "STORAGE_ERROR"


class UnsupportedOperationError(BrokerError):
    """Raised when data is written to an artifact backed by a remote source."""

    code = "UNSUPPORTED"


class ContractConfigurationError(BrokerError):
    """Raised when a stored contract or one of its dates cannot be interpreted."""

    code = "INVALID_CONTRACT"
