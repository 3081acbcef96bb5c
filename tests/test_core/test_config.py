"""Unit tests for the YAML settings loader."""

import tempfile
import textwrap
import unittest
from pathlib import Path

from linkpure.core.config import get_default_config_path, load_settings, load_sources
from linkpure.core.exceptions import ConfigError


class TestLoadSettings(unittest.TestCase):
    """Test load_settings."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def write_config(self, text):
        path = self.root / "linkpure.yaml"
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return path

    def test_full_config(self):
        path = self.write_config("""
            resolver:
              max_redirects: 8
            storage:
              db_path: data/rules.db
            bundle:
              output: out/shared.json
              sources_dir: out/sources
              name: Team Rules
            fetch:
              timeout: 10
            sources:
              - name: custom
                file: custom-rules.json
              - name: clearurls
                file: clearurls.json
                provider: clearurls
                url: https://rules.example/data.json
        """)

        settings = load_settings(path)

        self.assertEqual(settings.max_redirects, 8)
        self.assertEqual(settings.db_path, self.root / "data" / "rules.db")
        self.assertEqual(settings.bundle_output, self.root / "out" / "shared.json")
        self.assertEqual(settings.sources_dir, self.root / "out" / "sources")
        self.assertEqual(settings.bundle_name, "Team Rules")
        self.assertEqual(settings.fetch_timeout, 10.0)
        self.assertEqual([source.name for source in settings.sources], ["custom", "clearurls"])
        self.assertTrue(settings.sources[1].is_remote)

    def test_empty_file_uses_defaults(self):
        settings = load_settings(self.write_config(""))
        self.assertEqual(settings.max_redirects, 5)
        self.assertEqual(settings.sources, [])

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            load_settings(self.root / "missing.yaml")

    def test_invalid_yaml(self):
        with self.assertRaises(ConfigError):
            load_settings(self.write_config("resolver: [unclosed"))

    def test_non_mapping_root(self):
        with self.assertRaises(ConfigError):
            load_settings(self.write_config("- a\n- b\n"))

    def test_invalid_max_redirects(self):
        for value in ("0", "-2", "true", "five"):
            with self.subTest(value=value):
                path = self.write_config(f"resolver:\n  max_redirects: {value}\n")
                with self.assertRaises(ConfigError):
                    load_settings(path)

    def test_invalid_timeout(self):
        with self.assertRaises(ConfigError):
            load_settings(self.write_config("fetch:\n  timeout: 0\n"))

    def test_section_must_be_mapping(self):
        with self.assertRaises(ConfigError):
            load_settings(self.write_config("bundle: [1, 2]\n"))

    def test_shipped_config_loads(self):
        settings = load_settings(get_default_config_path())
        self.assertEqual(
            [source.name for source in settings.sources],
            ["custom", "linkumori", "clearurls"],
        )


class TestLoadSources(unittest.TestCase):
    """Test validation of the sources list."""

    def test_keeps_order(self):
        sources = load_sources([
            {"name": "b", "file": "b.json"},
            {"name": "a", "file": "a.json"},
        ])
        self.assertEqual([source.name for source in sources], ["b", "a"])

    def test_requires_name_and_file(self):
        with self.assertRaises(ConfigError):
            load_sources([{"name": "a"}])
        with self.assertRaises(ConfigError):
            load_sources([{"file": "a.json"}])

    def test_duplicate_names(self):
        with self.assertRaises(ConfigError):
            load_sources([
                {"name": "a", "file": "a.json"},
                {"name": "a", "file": "b.json"},
            ])

    def test_unknown_provider(self):
        with self.assertRaises(ConfigError):
            load_sources([{"name": "a", "file": "a.json", "provider": "adblock", "url": "https://x/"}])

    def test_provider_requires_url(self):
        with self.assertRaises(ConfigError):
            load_sources([{"name": "a", "file": "a.json", "provider": "clearurls"}])

    def test_not_a_list(self):
        with self.assertRaises(ConfigError):
            load_sources({"name": "a"})


if __name__ == "__main__":
    unittest.main()
