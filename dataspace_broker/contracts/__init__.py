"""
Contract documents, rule extraction and post-duty evaluation.
"""

from .duties import check_rule_for_post_duties, get_deletion_duties, is_due
from .rules import (
    deserialize_contract,
    extract_rules_for_target,
    extract_rules_from_contract,
    get_rules_for_target,
)
from .schema import (
    ContractDocument,
    ContractRule,
    Duty,
    Rule,
    RuleConstraint,
    RuleKind,
    RulePattern,
)

__all__ = [
    "ContractDocument",
    "ContractRule",
    "Duty",
    "Rule",
    "RuleConstraint",
    "RuleKind",
    "RulePattern",
    "deserialize_contract",
    "extract_rules_for_target",
    "extract_rules_from_contract",
    "get_rules_for_target",
    "check_rule_for_post_duties",
    "get_deletion_duties",
    "is_due",
]
