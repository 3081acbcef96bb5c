"""Unit tests for single-rule application."""

import re
import unittest

from linkpure.core.models import RuleRecord
from linkpure.rules.matcher import (
    apply_rule,
    expand_substitution,
    remove_query_params,
)


class TestRemoveQueryParams(unittest.TestCase):
    """Test query parameter stripping."""

    def test_removes_named_params(self):
        url = "https://ex.com/?a=1&utm_source=x&utm_medium=y"
        cleaned = remove_query_params(url, ["utm_source", "utm_medium"])
        self.assertEqual(cleaned, "https://ex.com/?a=1")

    def test_drops_empty_query(self):
        cleaned = remove_query_params("https://ex.com/p?fbclid=1", ["fbclid"])
        self.assertEqual(cleaned, "https://ex.com/p")

    def test_keeps_fragment(self):
        cleaned = remove_query_params("https://ex.com/?gclid=1&b=2#top", ["gclid"])
        self.assertEqual(cleaned, "https://ex.com/?b=2#top")

    def test_keeps_encoding_of_other_params(self):
        cleaned = remove_query_params("https://ex.com/?q=a%20b&ref=x", ["ref"])
        self.assertEqual(cleaned, "https://ex.com/?q=a%20b")

    def test_encoded_key_matches(self):
        cleaned = remove_query_params("https://ex.com/?utm%5Fsource=x", ["utm_source"])
        self.assertEqual(cleaned, "https://ex.com/")

    def test_param_without_value(self):
        cleaned = remove_query_params("https://ex.com/?ref&a=1", ["ref"])
        self.assertEqual(cleaned, "https://ex.com/?a=1")

    def test_nothing_to_remove(self):
        self.assertIsNone(remove_query_params("https://ex.com/?a=1", ["ref"]))

    def test_no_query(self):
        self.assertIsNone(remove_query_params("https://ex.com/#ref=1", ["ref"]))

    def test_name_is_not_prefix(self):
        """Names are compared whole, not as prefixes."""
        self.assertIsNone(remove_query_params("https://ex.com/?refresh=1", ["ref"]))


class TestExpandSubstitution(unittest.TestCase):
    """Test $N template expansion."""

    def test_numbered_groups(self):
        match = re.search(r"^https://(\w+)/(\w+)$", "https://host/path")
        self.assertEqual(expand_substitution("$2@$1", match), "path@host")

    def test_braced_group(self):
        match = re.search(r"^https://(\w+)/$", "https://host/")
        self.assertEqual(expand_substitution("${1}9", match), "host9")

    def test_captured_value_is_decoded(self):
        match = re.search(r"[?&]url=([^&]*)", "https://r.example/?url=https%3A%2F%2Fdest.example%2Fa")
        self.assertEqual(expand_substitution("$1", match), "https://dest.example/a")

    def test_plus_in_captured_value_is_space(self):
        match = re.search(r"[?&]q=([^&]*)", "https://s.example/?q=a+b%2Bc")
        self.assertEqual(expand_substitution("https://x/$1", match), "https://x/a b+c")

    def test_unknown_group_left_literal(self):
        match = re.search(r"^(a)$", "a")
        self.assertEqual(expand_substitution("$1-$7", match), "a-$7")

    def test_unmatched_group_is_empty(self):
        match = re.search(r"^(a)(b)?$", "a")
        self.assertEqual(expand_substitution("[$1$2]", match), "[a]")


class TestApplyRule(unittest.TestCase):
    """Test apply_rule for each rule behavior."""

    def test_param_rule(self):
        rule = RuleRecord(
            id="utm",
            match_pattern=r"^https://ex\.com/",
            remove_params=["utm_source", "utm_medium"],
        )
        result = apply_rule(rule, "https://ex.com/?a=1&utm_source=x&utm_medium=y")
        self.assertEqual(result, "https://ex.com/?a=1")

    def test_param_rule_pattern_mismatch(self):
        rule = RuleRecord(id="utm", match_pattern=r"^https://ex\.com/", remove_params=["a"])
        self.assertIsNone(apply_rule(rule, "https://other.com/?a=1"))

    def test_substitution_replaces_whole_url(self):
        rule = RuleRecord(
            id="redirect",
            match_pattern=r"^https?://out\.example/.*?[?&]u=([^&]*)",
            substitution="$1",
        )
        result = apply_rule(rule, "https://out.example/r?u=https%3A%2F%2Fdest.example%2F&x=1")
        self.assertEqual(result, "https://dest.example/")

    def test_search_anywhere(self):
        rule = RuleRecord(id="any", match_pattern=r"t\.co", substitution="https://x/")
        self.assertEqual(apply_rule(rule, "https://t.co/abc"), "https://x/")

    def test_matching_is_case_sensitive(self):
        rule = RuleRecord(id="case", match_pattern=r"EXAMPLE", substitution="https://x/")
        self.assertIsNone(apply_rule(rule, "https://example.com/"))

    def test_uncompilable_pattern_does_not_apply(self):
        rule = RuleRecord(id="huge", match_pattern="a", substitution="b")
        rule.match_pattern = "a{4294967296}"
        self.assertIsNone(apply_rule(rule, "https://a/"))

    def test_empty_substitution_cleans_path(self):
        rule = RuleRecord(id="raw", match_pattern=r"/ref=[^/?]*", substitution="")
        result = apply_rule(rule, "https://shop.example/dp/123/ref=abc?x=1")
        self.assertEqual(result, "https://shop.example/dp/123?x=1")

    def test_empty_substitution_removes_every_match(self):
        rule = RuleRecord(id="raw", match_pattern=r"\.tracking", substitution="")
        result = apply_rule(rule, "https://a.tracking.example/b.tracking")
        self.assertEqual(result, "https://a.example/b")


if __name__ == "__main__":
    unittest.main()
