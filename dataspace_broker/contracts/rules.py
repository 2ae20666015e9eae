"""
Rule extraction from stored contracts.

Pure functions: no database access. A malformed contract surfaces as a
ContractConfigurationError so callers can tell it apart from access
decisions.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import ValidationError

from ..exceptions import ContractConfigurationError
from .schema import ContractDocument, ContractRule, Rule, RuleKind, RulePattern

_DEFAULT_PATTERNS = {
    RuleKind.PERMISSION: RulePattern.PROVIDE_ACCESS,
    RuleKind.PROHIBITION: RulePattern.PROHIBIT_ACCESS,
    RuleKind.OBLIGATION: RulePattern.PROVIDE_ACCESS,
}


def deserialize_contract(value: str) -> ContractDocument:
    """Parse an agreement's serialized contract.

    Raises:
        ContractConfigurationError: If the document is not valid JSON or does
            not match the contract schema
    """
    if not value or not value.strip():
        raise ContractConfigurationError("Contract document is empty")
    try:
        return ContractDocument.model_validate_json(value)
    except ValidationError as e:
        raise ContractConfigurationError(
            f"Contract document could not be deserialized: {e.error_count()} error(s), "
            f"first: {e.errors()[0]['msg']}"
        ) from e


def _to_rule(
    declared: ContractRule, kind: RuleKind, contract: ContractDocument
) -> Rule:
    return Rule(
        id=declared.id,
        kind=kind,
        target=declared.target,
        pattern=declared.pattern or _DEFAULT_PATTERNS[kind],
        constraint=declared.constraint,
        post_duties=declared.post_duties,
        issued=contract.issued,
    )


def extract_rules_from_contract(contract: ContractDocument) -> List[Rule]:
    """Get all rules of a contract: permissions, then prohibitions, then obligations."""
    rules = [_to_rule(r, RuleKind.PERMISSION, contract) for r in contract.permissions]
    rules += [_to_rule(r, RuleKind.PROHIBITION, contract) for r in contract.prohibitions]
    rules += [_to_rule(r, RuleKind.OBLIGATION, contract) for r in contract.obligations]
    return rules


def get_rules_for_target(contract: ContractDocument, target: Optional[str]) -> List[Rule]:
    """Get the rules of a contract that apply to one artifact."""
    if target is None:
        return []
    return [rule for rule in extract_rules_from_contract(contract) if rule.target == target]


def extract_rules_for_target(value: str, target: Optional[str]) -> List[Rule]:
    """Deserialize an agreement's value and return the rules targeting an artifact."""
    return get_rules_for_target(deserialize_contract(value), target)
