"""
Contract document schema.

Agreements store their negotiated contract as a JSON document. The document
lists permissions, prohibitions and obligations; each rule targets one
artifact (by its provider-side identifier) and carries a usage pattern, the
structured constraint data the pattern needs and optional post duties.

Example:
    {
        "id": "https://provider/agreements/42",
        "issued": "2024-03-01T00:00:00Z",
        "permissions": [
            {
                "target": "https://provider/artifacts/7",
                "pattern": "USAGE_UNTIL_DELETION",
                "constraint": {
                    "not_before": "2024-03-01T00:00:00Z",
                    "not_after": "2024-06-01T00:00:00Z"
                },
                "post_duties": [{"action": "delete", "at": "2024-06-01T00:00:00Z"}]
            }
        ]
    }

Timestamps without a timezone are read as UTC. Durations are ISO 8601
(``P30D``, ``PT12H``).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator, model_validator


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RuleKind(str, Enum):
    """Section of the contract a rule was declared in."""

    PERMISSION = "permission"
    PROHIBITION = "prohibition"
    OBLIGATION = "obligation"


class RulePattern(str, Enum):
    """Usage patterns a rule can express."""

    PROVIDE_ACCESS = "PROVIDE_ACCESS"
    PROHIBIT_ACCESS = "PROHIBIT_ACCESS"
    N_TIMES_USAGE = "N_TIMES_USAGE"
    DURATION_USAGE = "DURATION_USAGE"
    USAGE_DURING_INTERVAL = "USAGE_DURING_INTERVAL"
    USAGE_UNTIL_DELETION = "USAGE_UNTIL_DELETION"
    USAGE_LOGGING = "USAGE_LOGGING"
    USAGE_NOTIFICATION = "USAGE_NOTIFICATION"
    CONNECTOR_RESTRICTED_USAGE = "CONNECTOR_RESTRICTED_USAGE"
    SECURITY_PROFILE_RESTRICTED_USAGE = "SECURITY_PROFILE_RESTRICTED_USAGE"


class Duty(BaseModel):
    """A post-access duty.

    The duty becomes due as soon as any of its conditions holds:
    - ``at``: the absolute point in time has passed
    - ``after``: the duration since the contract was issued has elapsed
    - ``after_accesses``: the artifact has been accessed that many times
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    action: Literal["delete"] = "delete"
    at: Optional[datetime] = None
    after: Optional[timedelta] = None
    after_accesses: Optional[int] = Field(None, ge=0)

    @field_validator("at")
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def _require_condition(self) -> "Duty":
        if self.at is None and self.after is None and self.after_accesses is None:
            raise ValueError("duty needs one of 'at', 'after' or 'after_accesses'")
        return self

    @property
    def counts_accesses(self) -> bool:
        return self.after_accesses is not None


class RuleConstraint(BaseModel):
    """Structured condition data of a rule."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    not_before: Optional[datetime] = None
    not_after: Optional[datetime] = None
    duration: Optional[timedelta] = None
    max_access: Optional[int] = Field(None, ge=0)
    connectors: List[str] = Field(default_factory=list)
    security_profile: Optional[str] = None
    notify_endpoint: Optional[str] = None

    @field_validator("not_before", "not_after")
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def _ordered_interval(self) -> "RuleConstraint":
        if (
            self.not_before is not None
            and self.not_after is not None
            and self.not_before > self.not_after
        ):
            raise ValueError("not_before must not be later than not_after")
        return self


class ContractRule(BaseModel):
    """A rule as declared in the contract document."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    target: constr(min_length=1, max_length=2048)
    pattern: Optional[RulePattern] = None
    constraint: RuleConstraint = Field(default_factory=RuleConstraint)
    post_duties: List[Duty] = Field(default_factory=list)


class ContractDocument(BaseModel):
    """The serialized contract stored in an agreement's value."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    issued: Optional[datetime] = None
    provider: Optional[str] = None
    consumer: Optional[str] = None

    permissions: List[ContractRule] = Field(default_factory=list)
    prohibitions: List[ContractRule] = Field(default_factory=list)
    obligations: List[ContractRule] = Field(default_factory=list)

    @field_validator("issued")
    @classmethod
    def normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class Rule(BaseModel):
    """A rule extracted from a contract, ready for verification and enforcement."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    kind: RuleKind
    target: str
    pattern: RulePattern
    constraint: RuleConstraint = Field(default_factory=RuleConstraint)
    post_duties: List[Duty] = Field(default_factory=list)
    issued: Optional[datetime] = None
