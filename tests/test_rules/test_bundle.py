"""Unit tests for rule documents: export, import and bundle files."""

import json
import tempfile
import unittest
from pathlib import Path

from linkpure.core.exceptions import InvalidRecordError, RuleImportError, RuleSourceError
from linkpure.core.models import RuleRecord, RuleTestCase
from linkpure.rules.bundle import (
    RuleBundle,
    export_rules,
    import_rules,
    load_bundle,
    parse_rules,
    save_bundle,
)


class TestImportRules(unittest.TestCase):
    """Test validation of import documents."""

    def test_export_then_import_keeps_rules(self):
        rules = [
            RuleRecord(
                id="tco",
                match_pattern=r"^https://t\.co/(.*)$",
                substitution="https://real.example/$1",
                tests=[RuleTestCase("https://t.co/a", "https://real.example/a")],
            ),
            RuleRecord(id="utm", match_pattern=".*", remove_params=["utm_source"], enabled=False),
        ]

        imported = import_rules(export_rules(rules), remap_ids=False)

        self.assertEqual(imported, rules)

    def test_ids_remapped(self):
        data = {"rules": [{"id": "a", "regexFilter": ".*", "removeParams": ["x"]}]}
        ids = iter(["fresh-1"])

        imported = import_rules(data, id_factory=lambda: next(ids))

        self.assertEqual(imported[0].id, "fresh-1")

    def test_default_remap_generates_new_ids(self):
        data = {"rules": [{"id": "a", "regexFilter": ".*", "removeParams": ["x"]}]}
        self.assertNotEqual(import_rules(data)[0].id, "a")

    def test_bare_array_accepted(self):
        rules = parse_rules([{"id": "a", "regexFilter": ".*", "removeParams": ["x"]}])
        self.assertEqual(rules[0].id, "a")

    def test_legacy_field_names(self):
        rules = parse_rules([{"id": "a", "from": "^http://x/$", "to": "https://x/"}])
        self.assertEqual(rules[0].match_pattern, "^http://x/$")
        self.assertEqual(rules[0].substitution, "https://x/")

    def test_missing_rules_key(self):
        with self.assertRaises(InvalidRecordError):
            parse_rules({"items": []})

    def test_all_or_nothing(self):
        """One invalid rule rejects the whole document and lists every issue."""
        data = {"rules": [
            {"id": "good", "regexFilter": ".*", "removeParams": ["x"]},
            {"id": "bad-pattern", "regexFilter": "(", "regexSubstitution": "x"},
            {"id": "no-behavior", "regexFilter": ".*"},
            {"regexFilter": ".*", "removeParams": ["x"]},
        ]}

        with self.assertRaises(RuleImportError) as ctx:
            import_rules(data)

        issues = ctx.exception.issues
        self.assertEqual([issue.index for issue in issues], [1, 2, 3])
        self.assertEqual(issues[0].rule_id, "bad-pattern")
        self.assertEqual(issues[0].field, "regexFilter")

    def test_duplicate_ids_rejected(self):
        data = [
            {"id": "a", "regexFilter": ".*", "removeParams": ["x"]},
            {"id": "a", "regexFilter": ".*", "removeParams": ["y"]},
        ]
        with self.assertRaises(RuleImportError):
            parse_rules(data)

    def test_oversized_repeat_reported_as_issue(self):
        data = {"rules": [
            {"id": "ok", "regexFilter": ".*", "removeParams": ["x"]},
            {"id": "huge", "regexFilter": "a{4294967296}", "regexSubstitution": "y"},
        ]}

        with self.assertRaises(RuleImportError) as ctx:
            import_rules(data)

        issue = ctx.exception.issues[0]
        self.assertEqual((issue.index, issue.rule_id, issue.field), (1, "huge", "regexFilter"))

    def test_duplicate_issue_names_document_position(self):
        """Duplicate ids are reported at their index in the document."""
        data = [
            {"id": "bad", "regexFilter": "(", "regexSubstitution": "x"},
            {"id": "a", "regexFilter": ".*", "removeParams": ["x"]},
            {"id": "a", "regexFilter": ".*", "removeParams": ["y"]},
        ]

        with self.assertRaises(RuleImportError) as ctx:
            parse_rules(data)

        issues = ctx.exception.issues
        self.assertEqual([issue.index for issue in issues], [0, 2])
        self.assertEqual(issues[1].field, "id")
        self.assertEqual(issues[1].rule_id, "a")

    def test_duplicate_ids_allowed_for_merge_input(self):
        data = [
            {"id": "a", "regexFilter": ".*", "removeParams": ["x"]},
            {"id": "a", "regexFilter": ".*", "removeParams": ["y"]},
        ]
        self.assertEqual(len(parse_rules(data, unique_ids=False)), 2)

    def test_both_behaviors_rejected(self):
        data = [{"id": "a", "regexFilter": ".*", "regexSubstitution": "x", "removeParams": ["y"]}]
        with self.assertRaises(RuleImportError):
            parse_rules(data)

    def test_bad_test_case_rejected(self):
        data = [{
            "id": "a",
            "regexFilter": ".*",
            "removeParams": ["y"],
            "test": [{"from": "https://x/"}],
        }]
        with self.assertRaises(RuleImportError):
            parse_rules(data)


class TestBundleFiles(unittest.TestCase):
    """Test reading and writing bundle files."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_save_and_load(self):
        bundle = RuleBundle(
            name="clearurls rules",
            description="Converted",
            rules=[RuleRecord(id="a", match_pattern=".*", remove_params=["x"])],
            source="https://rules.example/data.json",
        )
        path = self.root / "nested" / "clearurls.json"

        save_bundle(bundle, path)
        loaded = load_bundle(path, source="clearurls")

        self.assertEqual(loaded.name, "clearurls rules")
        self.assertEqual(loaded.source, "https://rules.example/data.json")
        self.assertEqual(loaded.rules, bundle.rules)
        self.assertEqual(loaded.rules[0].source, "clearurls")

    def test_written_layout(self):
        bundle = RuleBundle(name="Shared", rules=[
            RuleRecord(id="a", match_pattern=".*", remove_params=["x"]),
        ])
        path = self.root / "shared.json"

        save_bundle(bundle, path)
        data = json.loads(path.read_text(encoding="utf-8"))

        self.assertEqual(list(data), ["$schema", "name", "description", "rules"])
        self.assertEqual(data["rules"][0], {
            "id": "a",
            "regexFilter": ".*",
            "removeParams": ["x"],
            "enabled": True,
        })

    def test_invalid_json(self):
        path = self.root / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(RuleSourceError):
            load_bundle(path)

    def test_missing_file(self):
        with self.assertRaises(RuleSourceError):
            load_bundle(self.root / "missing.json")


if __name__ == "__main__":
    unittest.main()
