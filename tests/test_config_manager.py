import sys
import json
import shutil
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from pole_reconciler.core.config_manager import ConfigManager


class TestConfigManager(unittest.TestCase):

    def setUp(self):
        self.base_dir = Path(tempfile.mkdtemp())
        self.config_manager = ConfigManager(self.base_dir)

    def tearDown(self):
        shutil.rmtree(self.base_dir, ignore_errors=True)

    def test_get_default_config(self):
        default_config = self.config_manager.get_default_config()
        self.assertIn("pole_id_prefixes", default_config)
        self.assertIn("comm_keywords", default_config)
        self.assertIn("power_keywords", default_config)
        self.assertIn("design_state_keywords", default_config)
        self.assertEqual(default_config["match_scoring"]["threshold"], 10)
        self.assertEqual(default_config["match_scoring"]["owner_exact"], 25)
        self.assertIn(["AT&T", "ATT"], default_config["owner_aliases"])

    def test_get_available_configs(self):
        self.config_manager.save_config("Xcel", {"grade_keyword": "Grade B"})
        available_configs = self.config_manager.get_available_configs()
        self.assertEqual(available_configs, ["Default", "Xcel"])

    def test_load_missing_config_returns_defaults(self):
        config = self.config_manager.load_config("Nope")
        self.assertEqual(config, ConfigManager.get_default_config())

    def test_load_config_merges_over_defaults(self):
        self.config_manager.save_config("Default", {
            "grade_keyword": "Grade B",
            "match_scoring": {"threshold": 15},
        })
        config = self.config_manager.load_config("Default")
        self.assertEqual(config["grade_keyword"], "Grade B")
        self.assertEqual(config["match_scoring"]["threshold"], 15)
        self.assertEqual(config["match_scoring"]["owner_exact"], 25)
        self.assertTrue((self.base_dir / "pole_reconciler_config.json").exists())

    def test_load_corrupt_config_falls_back_to_defaults(self):
        (self.base_dir / "configurations" / "Broken.json").write_text("{not json", encoding="utf-8")
        with self.assertLogs(level='WARNING'):
            config = self.config_manager.load_config("Broken")
        self.assertEqual(config["grade_keyword"], "Grade C")

    def test_save_config(self):
        config_name = "test_config"
        config_data = self.config_manager.get_default_config()
        success = self.config_manager.save_config(config_name, config_data)
        self.assertTrue(success)
        saved = json.loads((self.base_dir / "configurations" / "test_config.json").read_text(encoding="utf-8"))
        self.assertEqual(saved["grade_keyword"], "Grade C")

    def test_delete_config(self):
        config_name = "test_config"
        self.config_manager.save_config(config_name, self.config_manager.get_default_config())
        success = self.config_manager.delete_config(config_name)
        self.assertTrue(success)
        self.assertNotIn(config_name, self.config_manager.get_available_configs())

    def test_default_config_cannot_be_deleted(self):
        self.assertFalse(self.config_manager.delete_config("Default"))

    def test_with_defaults_does_not_share_state(self):
        overrides = {"owner_aliases": [["Lumen", "CenturyLink"]]}
        merged = ConfigManager.with_defaults(overrides)
        merged["owner_aliases"].append(["A", "B"])
        self.assertEqual(overrides["owner_aliases"], [["Lumen", "CenturyLink"]])
        self.assertIn("comm_keywords", merged)


if __name__ == '__main__':
    unittest.main()
