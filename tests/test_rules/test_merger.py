"""Unit tests for RuleMerger.

Tests cover:
- Priority order on id collisions
- First-seen output ordering
- Per-source duplicate counts
- Rejection of malformed sources
"""

import unittest

from linkpure.core.exceptions import RuleSourceError
from linkpure.core.models import RuleRecord, RuleSource
from linkpure.rules.merger import RuleMerger


def param_rule(rule_id, *params):
    return RuleRecord(id=rule_id, match_pattern=".*", remove_params=list(params) or ["ref"])


class TestRuleMerger(unittest.TestCase):
    """Test merging of prioritized sources."""

    def setUp(self):
        self.merger = RuleMerger()

    def test_higher_priority_wins(self):
        """The first source keeps its record on an id collision."""
        custom = param_rule("p-1", "mine")
        clearurls = param_rule("p-1", "theirs")

        result = self.merger.merge([
            RuleSource("custom", [custom]),
            RuleSource("clearurls", [clearurls]),
        ])

        self.assertEqual(len(result.rules), 1)
        self.assertEqual(result.rules[0].remove_params, ["mine"])
        self.assertEqual(result.duplicates, {"custom": 0, "clearurls": 1})
        self.assertEqual(result.skipped, [("clearurls", "p-1")])
        self.assertEqual(result.total_duplicates, 1)

    def test_first_seen_order(self):
        """Output follows first appearance across all sources."""
        result = self.merger.merge([
            ("custom", [param_rule("z"), param_rule("b")]),
            ("linkumori", [param_rule("b"), param_rule("a")]),
            ("clearurls", [param_rule("m"), param_rule("z"), param_rule("c")]),
        ])

        self.assertEqual([rule.id for rule in result.rules], ["z", "b", "a", "m", "c"])
        self.assertEqual(result.duplicates, {"custom": 0, "linkumori": 1, "clearurls": 1})
        self.assertEqual(result.source_counts, {"custom": 2, "linkumori": 2, "clearurls": 3})

    def test_deterministic(self):
        """Same inputs in the same order give the same output order."""
        sources = [
            ("a", [param_rule(f"r{i}") for i in range(20, 0, -1)]),
            ("b", [param_rule(f"r{i}") for i in range(40)]),
        ]

        first = [rule.id for rule in self.merger.merge(sources).rules]
        second = [rule.id for rule in self.merger.merge(sources).rules]

        self.assertEqual(first, second)

    def test_duplicates_within_one_source(self):
        """Repeats inside a single source are counted for that source."""
        result = self.merger.merge([("custom", [param_rule("x"), param_rule("x")])])

        self.assertEqual(len(result.rules), 1)
        self.assertEqual(result.duplicates["custom"], 1)

    def test_tags_source(self):
        result = self.merger.merge([("custom", [param_rule("x")])])
        self.assertEqual(result.rules[0].source, "custom")

    def test_existing_source_tag_kept(self):
        rule = RuleRecord(id="x", match_pattern=".*", remove_params=["a"], source="clearurls")
        result = self.merger.merge([("bundle", [rule])])
        self.assertEqual(result.rules[0].source, "clearurls")

    def test_no_tagging(self):
        result = RuleMerger(tag_source=False).merge([("custom", [param_rule("x")])])
        self.assertIsNone(result.rules[0].source)

    def test_empty_sources(self):
        result = self.merger.merge([("custom", []), ("clearurls", [])])
        self.assertEqual(result.rules, [])
        self.assertEqual(result.total_duplicates, 0)


class TestMergerValidation(unittest.TestCase):
    """Test rejection of malformed input."""

    def setUp(self):
        self.merger = RuleMerger()

    def test_rejects_non_rule_entries(self):
        with self.assertRaises(RuleSourceError):
            self.merger.merge([("custom", [{"id": "x"}])])

    def test_rejects_rules_mapping(self):
        with self.assertRaises(RuleSourceError):
            self.merger.merge([("custom", {"x": param_rule("x")})])

    def test_rejects_unnamed_source(self):
        with self.assertRaises(RuleSourceError):
            self.merger.merge([("", [param_rule("x")])])

    def test_rejects_bare_list(self):
        with self.assertRaises(RuleSourceError):
            self.merger.merge([[param_rule("x")]])


if __name__ == "__main__":
    unittest.main()
