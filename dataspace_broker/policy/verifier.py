"""
Policy verification for artifact data access.

A verifier is a pure decision function over an access subject: a read-only
snapshot of the artifact plus the rules of the governing agreement that
target it. Every verifier answers ALLOWED or DENIED; a verifier that cannot
decide (for example because no rule carries the conditions it checks)
answers DENIED itself.

Strategies:
- AllowAllVerifier: always ALLOWED (usage control disabled)
- DenyAllVerifier: always DENIED
- TimeIntervalVerifier: now within [not_before, not_after], or within the
  contract's issue date plus its usage duration
- AccessCountVerifier: artifact accessed fewer times than the bound
- ConnectorRestrictionVerifier: requesting connector is in the allow-list
- SecurityProfileVerifier: requesting connector runs the required profile
- LogOnlyVerifier: always ALLOWED, records the access
- ContractRuleVerifier: dispatches every rule to the strategy matching its
  usage pattern; the first denial wins

Verifiers never mutate artifact state. Combining results across agreements
is the caller's job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

import structlog

from ..contracts.schema import Rule, RuleKind, RulePattern, as_utc

if TYPE_CHECKING:
    from ..config import Settings
    from ..db.models import ArtifactModel

logger = structlog.get_logger()


class VerificationResult(str, Enum):
    """Outcome of a policy verification."""

    ALLOWED = "ALLOWED"
    DENIED = "DENIED"


@dataclass(frozen=True)
class Decision:
    """A verification result together with the reason for a denial."""

    result: VerificationResult
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(VerificationResult.ALLOWED)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(VerificationResult.DENIED, reason)

    @property
    def allowed(self) -> bool:
        return self.result == VerificationResult.ALLOWED


@dataclass(frozen=True)
class ArtifactView:
    """Read-only snapshot of an artifact's bookkeeping."""

    id: str
    remote_id: Optional[str] = None
    title: str = ""
    num_accessed: int = 0
    automated_download: bool = False
    byte_size: int = 0
    check_sum: int = 0

    @classmethod
    def from_model(cls, artifact: "ArtifactModel") -> "ArtifactView":
        return cls(
            id=artifact.id,
            remote_id=artifact.remote_id,
            title=artifact.title or "",
            num_accessed=artifact.num_accessed or 0,
            automated_download=bool(artifact.automated_download),
            byte_size=artifact.byte_size or 0,
            check_sum=artifact.check_sum or 0,
        )


@dataclass(frozen=True)
class AccessSubject:
    """Everything a verifier may look at for one access attempt."""

    artifact: ArtifactView
    rules: Tuple[Rule, ...] = ()
    agreement_id: Optional[str] = None
    connector_id: Optional[str] = None
    security_profile: Optional[str] = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PolicyVerifier(ABC):
    """Interface of all verification strategies."""

    name = "base"

    @abstractmethod
    def check(self, subject: AccessSubject) -> Decision:
        """Decide on an access attempt and explain a denial."""

    def check_rule(self, subject: AccessSubject, rule: Rule) -> Decision:
        """Decide on a single rule of the subject."""
        return self.check(subject)

    def verify(self, subject: AccessSubject) -> VerificationResult:
        """Decide on an access attempt."""
        return self.check(subject).result


class AllowAllVerifier(PolicyVerifier):
    """Allows every access. Used when usage control is disabled."""

    name = "allow_all"

    def check(self, subject: AccessSubject) -> Decision:
        return Decision.allow()


class DenyAllVerifier(PolicyVerifier):
    """Denies every access."""

    name = "deny_all"

    def __init__(self, reason: str = "Access to this artifact is prohibited."):
        self.reason = reason

    def check(self, subject: AccessSubject) -> Decision:
        return Decision.deny(self.reason)


class RuleVerifier(PolicyVerifier):
    """A strategy that evaluates the subject's rules carrying its conditions.

    All applicable rules must allow. With no applicable rule the strategy
    falls back to check_without_rule, which denies unless overridden.
    """

    def applies_to(self, rule: Rule) -> bool:
        return True

    def check_without_rule(self, subject: AccessSubject) -> Decision:
        return Decision.deny(f"No rule carries {self.name} conditions.")

    def check(self, subject: AccessSubject) -> Decision:
        rules = [rule for rule in subject.rules if self.applies_to(rule)]
        if not rules:
            return self.check_without_rule(subject)
        for rule in rules:
            decision = self.check_rule(subject, rule)
            if not decision.allowed:
                return decision
        return Decision.allow()

    @abstractmethod
    def check_rule(self, subject: AccessSubject, rule: Rule) -> Decision:
        """Decide on a single rule."""


class TimeIntervalVerifier(RuleVerifier):
    """Allows access only inside the rule's validity window."""

    name = "time_interval"

    def applies_to(self, rule: Rule) -> bool:
        constraint = rule.constraint
        return (
            constraint.not_before is not None
            or constraint.not_after is not None
            or constraint.duration is not None
        )

    def check_rule(self, subject: AccessSubject, rule: Rule) -> Decision:
        if not self.applies_to(rule):
            return Decision.deny("Rule carries no time interval.")

        now = as_utc(subject.now)
        constraint = rule.constraint

        if constraint.not_before is not None and now < constraint.not_before:
            return Decision.deny(
                f"Usage is not permitted before {constraint.not_before.isoformat()}."
            )
        if constraint.not_after is not None and now > constraint.not_after:
            return Decision.deny(
                f"Usage is not permitted after {constraint.not_after.isoformat()}."
            )

        if constraint.duration is not None:
            if rule.issued is None:
                return Decision.deny("Usage duration has no contract issue date.")
            end = as_utc(rule.issued) + constraint.duration
            if now > end:
                return Decision.deny(f"Usage duration ended at {end.isoformat()}.")

        return Decision.allow()


class AccessCountVerifier(RuleVerifier):
    """Allows access while the artifact was accessed fewer times than the bound.

    The rule's bound takes precedence; max_access is used for rules without
    one and for subjects without rules.
    """

    name = "access_count"

    def __init__(self, max_access: Optional[int] = None):
        self.max_access = max_access

    def applies_to(self, rule: Rule) -> bool:
        return rule.constraint.max_access is not None or self.max_access is not None

    def check_without_rule(self, subject: AccessSubject) -> Decision:
        if self.max_access is None:
            return super().check_without_rule(subject)
        return self._check_limit(subject, self.max_access)

    def check_rule(self, subject: AccessSubject, rule: Rule) -> Decision:
        limit = rule.constraint.max_access
        if limit is None:
            limit = self.max_access
        if limit is None:
            return Decision.deny("Rule carries no access limit.")
        return self._check_limit(subject, limit)

    @staticmethod
    def _check_limit(subject: AccessSubject, limit: int) -> Decision:
        if subject.artifact.num_accessed < limit:
            return Decision.allow()
        return Decision.deny(
            f"Access limit of {limit} reached ({subject.artifact.num_accessed} accesses)."
        )


class ConnectorRestrictionVerifier(RuleVerifier):
    """Allows access only to connectors on the allow-list."""

    name = "connector_restriction"

    def __init__(self, allowed_connectors: Optional[List[str]] = None):
        self.allowed_connectors = list(allowed_connectors or [])

    def applies_to(self, rule: Rule) -> bool:
        return bool(rule.constraint.connectors) or bool(self.allowed_connectors)

    def check_without_rule(self, subject: AccessSubject) -> Decision:
        if not self.allowed_connectors:
            return super().check_without_rule(subject)
        return self._check_connector(subject, self.allowed_connectors)

    def check_rule(self, subject: AccessSubject, rule: Rule) -> Decision:
        allowed = rule.constraint.connectors or self.allowed_connectors
        return self._check_connector(subject, allowed)

    @staticmethod
    def _check_connector(subject: AccessSubject, allowed: List[str]) -> Decision:
        if subject.connector_id is not None and subject.connector_id in allowed:
            return Decision.allow()
        return Decision.deny(
            f"Connector '{subject.connector_id}' is not permitted to use this artifact."
        )


class SecurityProfileVerifier(RuleVerifier):
    """Allows access only to connectors running the required security profile."""

    name = "security_profile"

    def __init__(self, required_profile: Optional[str] = None):
        self.required_profile = required_profile

    def applies_to(self, rule: Rule) -> bool:
        return rule.constraint.security_profile is not None or self.required_profile is not None

    def check_without_rule(self, subject: AccessSubject) -> Decision:
        if self.required_profile is None:
            return super().check_without_rule(subject)
        return self._check_profile(subject, self.required_profile)

    def check_rule(self, subject: AccessSubject, rule: Rule) -> Decision:
        required = rule.constraint.security_profile or self.required_profile
        if required is None:
            return Decision.deny("Rule carries no security profile.")
        return self._check_profile(subject, required)

    @staticmethod
    def _check_profile(subject: AccessSubject, required: str) -> Decision:
        if subject.security_profile == required:
            return Decision.allow()
        return Decision.deny(
            f"Security profile '{subject.security_profile}' does not match '{required}'."
        )


class LogOnlyVerifier(PolicyVerifier):
    """Allows every access and records it.

    The optional sink receives the subject and the rule (None when checked
    without a rule). Sink failures are logged and never change the result.
    """

    name = "log_only"

    def __init__(
        self, sink: Optional[Callable[[AccessSubject, Optional[Rule]], None]] = None
    ):
        self.sink = sink

    def check(self, subject: AccessSubject) -> Decision:
        self._record(subject, None)
        return Decision.allow()

    def check_rule(self, subject: AccessSubject, rule: Rule) -> Decision:
        self._record(subject, rule)
        return Decision.allow()

    def _record(self, subject: AccessSubject, rule: Optional[Rule]) -> None:
        logger.info(
            "usage_logged",
            artifact_id=subject.artifact.id,
            agreement_id=subject.agreement_id,
            connector_id=subject.connector_id,
            rule_id=rule.id if rule else None,
            notify_endpoint=rule.constraint.notify_endpoint if rule else None,
        )
        if self.sink is None:
            return
        try:
            self.sink(subject, rule)
        except Exception as e:
            logger.warning(
                "usage_log_sink_failed", artifact_id=subject.artifact.id, error=str(e)
            )


class ContractRuleVerifier(PolicyVerifier):
    """Evaluates every rule of the governing agreement by its usage pattern.

    Prohibitions always deny. A subject without rules is denied because the
    agreement does not cover the artifact.
    """

    name = "contract_rules"

    def __init__(
        self,
        default_max_access: Optional[int] = None,
        allowed_connectors: Optional[List[str]] = None,
        log_sink: Optional[Callable[[AccessSubject, Optional[Rule]], None]] = None,
    ):
        interval = TimeIntervalVerifier()
        log_only = LogOnlyVerifier(log_sink)
        self.strategies: Dict[RulePattern, PolicyVerifier] = {
            RulePattern.PROVIDE_ACCESS: AllowAllVerifier(),
            RulePattern.PROHIBIT_ACCESS: DenyAllVerifier(),
            RulePattern.N_TIMES_USAGE: AccessCountVerifier(default_max_access),
            RulePattern.DURATION_USAGE: interval,
            RulePattern.USAGE_DURING_INTERVAL: interval,
            RulePattern.USAGE_UNTIL_DELETION: interval,
            RulePattern.USAGE_LOGGING: log_only,
            RulePattern.USAGE_NOTIFICATION: log_only,
            RulePattern.CONNECTOR_RESTRICTED_USAGE: ConnectorRestrictionVerifier(
                allowed_connectors
            ),
            RulePattern.SECURITY_PROFILE_RESTRICTED_USAGE: SecurityProfileVerifier(),
        }

    def check(self, subject: AccessSubject) -> Decision:
        if not subject.rules:
            return Decision.deny("No rule of the agreement targets this artifact.")

        for rule in subject.rules:
            decision = self.check_rule(subject, rule)
            if not decision.allowed:
                return decision
        return Decision.allow()

    def check_rule(self, subject: AccessSubject, rule: Rule) -> Decision:
        if rule.kind == RuleKind.PROHIBITION:
            return Decision.deny(f"Rule '{rule.id or rule.target}' prohibits usage.")
        return self.strategies[rule.pattern].check_rule(subject, rule)


def get_verifier(
    settings: Optional["Settings"] = None,
    log_sink: Optional[Callable[[AccessSubject, Optional[Rule]], None]] = None,
) -> PolicyVerifier:
    """Select the verifier for the configured usage control mode.

    Usage control disabled, or enforced by an external policy engine, allows
    every access in-process. Otherwise contracts are evaluated rule by rule.
    """
    if settings is None:
        from ..config import get_settings

        settings = get_settings()

    if not settings.usage_control_enabled or settings.usage_control_framework == "external":
        return AllowAllVerifier()

    return ContractRuleVerifier(
        default_max_access=settings.default_max_access,
        allowed_connectors=settings.allowed_connector_list,
        log_sink=log_sink,
    )
