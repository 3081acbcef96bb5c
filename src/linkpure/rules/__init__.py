"""Rule evaluation and aggregation.

This package provides the rule engine:
- ChainResolver: Simulate rewrite chains and classify their outcome
- RuleMerger: Merge prioritized rule sources with id deduplication
- apply_rule: Apply a single rule to a URL
- import_rules / export_rules: Validated rule file exchange
"""

from linkpure.rules.matcher import apply_rule
from linkpure.rules.resolver import ChainResolver, check_rule_chain, verify_rules
from linkpure.rules.merger import RuleMerger
from linkpure.rules.bundle import RuleBundle, export_rules, import_rules

__all__ = [
    "apply_rule",
    "ChainResolver",
    "check_rule_chain",
    "verify_rules",
    "RuleMerger",
    "RuleBundle",
    "export_rules",
    "import_rules",
]
