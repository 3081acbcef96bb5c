"""Priority-ordered rule merging.

This module combines several named rule collections into one collection
with unique ids. Sources are consulted in priority order (highest first);
on an id collision the earlier source wins and the later record is
reported as a skipped duplicate.
"""

import logging
from dataclasses import replace
from typing import Iterable, Sequence, Union

from linkpure.core.exceptions import RuleSourceError
from linkpure.core.models import MergeResult, RuleRecord, RuleSource


logger = logging.getLogger(__name__)

SourceInput = Union[RuleSource, tuple[str, Sequence[RuleRecord]]]


class RuleMerger:
    """Merge rule collections under a fixed precedence order.

    Output order is the first-seen order across the whole priority-ordered
    iteration: not grouped by source and not sorted. The result depends
    only on the ordered sources and their contents.
    """

    def __init__(self, *, tag_source: bool = True):
        """Initialize RuleMerger.

        Args:
            tag_source: Set ``source`` on kept records that carry none
        """
        self.tag_source = tag_source

    def merge(self, sources: Iterable[SourceInput]) -> MergeResult:
        """Merge rule sources.

        Args:
            sources: ``RuleSource`` objects or ``(name, rules)`` pairs,
                highest priority first

        Returns:
            MergeResult with the surviving rules and duplicate counts

        Raises:
            RuleSourceError: If a source is not a named list of RuleRecords
        """
        seen_ids: set[str] = set()
        merged: list[RuleRecord] = []
        result = MergeResult(rules=merged)

        for source in sources:
            name, rules = self._unpack(source)
            result.source_counts[name] = result.source_counts.get(name, 0) + len(rules)
            result.duplicates.setdefault(name, 0)

            for rule in rules:
                if rule.id in seen_ids:
                    result.duplicates[name] += 1
                    result.skipped.append((name, rule.id))
                    logger.info(f"Skipping duplicate rule {rule.id} from {name}")
                    continue

                seen_ids.add(rule.id)
                if self.tag_source and rule.source is None:
                    rule = replace(rule, source=name)
                merged.append(rule)

        if result.total_duplicates:
            logger.info(
                f"Merged {len(merged)} rules, {result.total_duplicates} duplicates removed"
            )
        return result

    def _unpack(self, source: SourceInput) -> tuple[str, list[RuleRecord]]:
        """Validate one source and return its name and rules.

        Raises:
            RuleSourceError: If the source is structurally invalid
        """
        if isinstance(source, RuleSource):
            name, rules = source.name, source.rules
        elif isinstance(source, tuple) and len(source) == 2:
            name, rules = source
        else:
            raise RuleSourceError(f"Invalid rule source: {source!r}")

        if not isinstance(name, str) or not name:
            raise RuleSourceError(f"Rule source name must be a non-empty string, got {name!r}")

        if isinstance(rules, (str, bytes, dict)) or not isinstance(rules, Sequence):
            raise RuleSourceError(f"Rules of source '{name}' must be a list")

        for rule in rules:
            if not isinstance(rule, RuleRecord):
                raise RuleSourceError(
                    f"Source '{name}' contains a non-rule entry: {type(rule).__name__}"
                )

        return name, list(rules)
