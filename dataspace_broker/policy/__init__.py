"""
Policy verification for artifact data access.
"""

from .verifier import (
    AccessCountVerifier,
    AccessSubject,
    AllowAllVerifier,
    ArtifactView,
    ConnectorRestrictionVerifier,
    ContractRuleVerifier,
    Decision,
    DenyAllVerifier,
    LogOnlyVerifier,
    PolicyVerifier,
    SecurityProfileVerifier,
    TimeIntervalVerifier,
    VerificationResult,
    get_verifier,
)

__all__ = [
    "AccessCountVerifier",
    "AccessSubject",
    "AllowAllVerifier",
    "ArtifactView",
    "ConnectorRestrictionVerifier",
    "ContractRuleVerifier",
    "Decision",
    "DenyAllVerifier",
    "LogOnlyVerifier",
    "PolicyVerifier",
    "SecurityProfileVerifier",
    "TimeIntervalVerifier",
    "VerificationResult",
    "get_verifier",
]
