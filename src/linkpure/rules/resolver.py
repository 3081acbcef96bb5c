"""Rewrite chain resolution.

This module simulates how a URL is rewritten by an ordered rule list:
the first matching rule is applied, the result is matched again, and so
on until the chain settles, loops back onto a URL it already produced,
or exceeds the round bound. No network requests are made.
"""

import logging
from typing import Iterable, Optional, Sequence

from linkpure.core.constants import ChainStatus, DEFAULTS
from linkpure.core.models import ChainResult, RuleRecord, RuleTestFailure
from linkpure.rules.matcher import apply_rule


logger = logging.getLogger(__name__)


class ChainResolver:
    """Classify how a URL rewrites under repeated rule application.

    Outcomes:
    - not-matched: no rule applies to the input URL
    - matched: one or more rewrites, then no rule applies
    - circular-redirect: a rewrite reproduced the input or an earlier URL
    - infinite-redirect: still rewriting after ``max_redirects`` rounds
    """

    def __init__(self, max_redirects: int = DEFAULTS["max_redirects"]):
        """Initialize ChainResolver.

        Args:
            max_redirects: Maximum number of rewrite rounds

        Raises:
            ValueError: If max_redirects is not positive
        """
        if max_redirects <= 0:
            raise ValueError(f"max_redirects must be positive, got {max_redirects}")
        self.max_redirects = max_redirects

    def resolve(self, rules: Sequence[RuleRecord], url: str) -> ChainResult:
        """Resolve the rewrite chain for a URL.

        Disabled rules are ignored. Rule order is significant: in each
        round the first matching rule wins.

        Args:
            rules: Ordered rule list
            url: Starting URL

        Returns:
            ChainResult with status and every produced URL
        """
        enabled = [rule for rule in rules if rule.enabled]
        produced: list[str] = []
        applied: list[str] = []
        current = url

        for round_index in range(self.max_redirects):
            step = self._first_match(enabled, current)

            if step is None:
                if round_index == 0:
                    return ChainResult(status=ChainStatus.NOT_MATCHED)
                return ChainResult(status=ChainStatus.MATCHED, urls=produced, rule_ids=applied)

            rule_id, rewritten = step
            looped = rewritten == url or rewritten in produced
            produced.append(rewritten)
            applied.append(rule_id)

            if looped:
                logger.debug(f"Circular redirect via rule {rule_id}: {rewritten}")
                return ChainResult(
                    status=ChainStatus.CIRCULAR_REDIRECT,
                    urls=produced,
                    rule_ids=applied,
                )

            current = rewritten

        logger.debug(f"Chain for {url} exceeded {self.max_redirects} rounds")
        return ChainResult(status=ChainStatus.INFINITE_REDIRECT, urls=produced, rule_ids=applied)

    def _first_match(
        self,
        rules: Iterable[RuleRecord],
        url: str,
    ) -> Optional[tuple[str, str]]:
        for rule in rules:
            rewritten = apply_rule(rule, url)
            if rewritten is not None:
                return rule.id, rewritten
        return None


def check_rule_chain(
    rules: Sequence[RuleRecord],
    url: str,
    max_redirects: int = DEFAULTS["max_redirects"],
) -> ChainResult:
    """Resolve a URL with a one-off ChainResolver."""
    return ChainResolver(max_redirects).resolve(rules, url)


# ============================================================================
# Rule Self-Tests
# ============================================================================

def verify_rule(rule: RuleRecord) -> list[RuleTestFailure]:
    """Run the test cases embedded in a rule.

    A rule that does not apply to a case's input leaves it unchanged.

    Returns:
        Failed cases (empty when all pass)
    """
    failures = []
    for case in rule.tests:
        rewritten = apply_rule(rule, case.from_url)
        actual = case.from_url if rewritten is None else rewritten
        if actual != case.to_url:
            failures.append(RuleTestFailure(
                rule_id=rule.id,
                from_url=case.from_url,
                expected=case.to_url,
                actual=actual,
            ))
    return failures


def verify_rules(rules: Iterable[RuleRecord]) -> list[RuleTestFailure]:
    """Run the embedded test cases of every rule in a collection."""
    failures = []
    for rule in rules:
        failures.extend(verify_rule(rule))
    return failures
