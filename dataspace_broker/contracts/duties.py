"""
Post-duty evaluation.

``is_due`` returns True exactly when a duty's retention condition has lapsed.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from ..exceptions import ContractConfigurationError
from .schema import Duty, Rule, as_utc


def is_due(
    duty: Duty,
    now: datetime,
    issued: Optional[datetime] = None,
    num_accessed: Optional[int] = None,
) -> bool:
    """Check whether a duty has become due.

    Args:
        duty: The duty to evaluate
        now: Current time; naive values are read as UTC
        issued: Issue date of the contract, required for relative durations
        num_accessed: Current access counter of the target artifact; access
            bounds are not due while this is unknown

    Raises:
        ContractConfigurationError: If a relative duration has no issue date
    """
    now = as_utc(now)

    if duty.at is not None and now > duty.at:
        return True

    if duty.after is not None:
        if issued is None:
            raise ContractConfigurationError(
                "Duty with a relative duration requires the contract's issue date"
            )
        if now > as_utc(issued) + duty.after:
            return True

    if duty.after_accesses is not None and num_accessed is not None:
        if num_accessed >= duty.after_accesses:
            return True

    return False


def get_deletion_duties(rule: Rule) -> List[Duty]:
    """Get the duties of a rule that require erasing the target's data."""
    return [duty for duty in rule.post_duties if duty.action == "delete"]


def rule_counts_accesses(rule: Rule) -> bool:
    """Whether evaluating the rule's duties needs the artifact's access counter."""
    return any(duty.counts_accesses for duty in get_deletion_duties(rule))


def check_rule_for_post_duties(
    rule: Rule, now: datetime, num_accessed: Optional[int] = None
) -> bool:
    """Check whether any deletion duty of a rule has become due."""
    return any(
        is_due(duty, now, issued=rule.issued, num_accessed=num_accessed)
        for duty in get_deletion_duties(rule)
    )
