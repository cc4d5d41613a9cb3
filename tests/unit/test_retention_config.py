"""
Unit tests for retention configuration loading.
"""

import shutil
import tempfile
import unittest
from pathlib import Path

import yaml

from ungdomsstod.storage.retention_config import RetentionConfig, RetentionConfigManager


class TestRetentionConfigManager(unittest.TestCase):
    """Test loading, defaults and validation."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "configs" / "retention.yaml"

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _write(self, data):
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            if isinstance(data, str):
                f.write(data)
            else:
                yaml.dump(data, f)

    def test_missing_file_writes_defaults(self):
        manager = RetentionConfigManager(str(self.config_path))

        self.assertTrue(self.config_path.exists())
        with open(self.config_path) as f:
            written = yaml.safe_load(f)
        self.assertEqual(written['global']['retention_days'], 180)
        self.assertEqual(written['storage']['backend'], 'sqlite')

        self.assertTrue(manager.is_enabled())
        self.assertEqual(manager.get_retention_days(), 180)
        self.assertEqual(manager.config.export.formats, ['json', 'csv'])
        self.assertTrue(manager.config.export.export_before_cleanup)

    def test_custom_values(self):
        self._write({
            'global': {'enabled': False, 'retention_days': 365},
            'storage': {'backend': 'memory'},
            'export': {'directory': '/tmp/exports', 'formats': ['csv']},
            'audit': {'actor': 'scheduler'},
        })

        config = RetentionConfigManager(str(self.config_path)).config

        self.assertFalse(config.global_settings.enabled)
        self.assertEqual(config.global_settings.retention_days, 365)
        self.assertEqual(config.storage.backend, 'memory')
        self.assertEqual(config.export.formats, ['csv'])
        self.assertEqual(config.audit.actor, 'scheduler')
        self.assertTrue(config.audit.enabled)

    def test_partial_sections_use_defaults(self):
        self._write({'global': {'retention_days': 30}})

        config = RetentionConfigManager(str(self.config_path)).config

        self.assertEqual(config.global_settings.retention_days, 30)
        self.assertTrue(config.global_settings.enabled)
        self.assertEqual(config.storage.db_path, 'data/ungdomsstod.db')

    def test_empty_file_uses_defaults(self):
        self._write("")
        self.assertEqual(RetentionConfigManager(str(self.config_path)).get_retention_days(), 180)

    def test_invalid_yaml_falls_back_to_defaults(self):
        self._write("global: [unclosed")
        self.assertEqual(RetentionConfigManager(str(self.config_path)).get_retention_days(), 180)

    def test_invalid_values_fall_back_to_defaults(self):
        for data in (
            {'global': {'retention_days': -1}},
            {'storage': {'backend': 'postgres'}},
            {'export': {'formats': ['xml']}},
            {'export': {'formats': []}},
        ):
            self._write(data)
            config = RetentionConfigManager(str(self.config_path)).config
            self.assertEqual(config, RetentionConfig())

    def test_defaults_model(self):
        config = RetentionConfig()
        dumped = config.model_dump(by_alias=True)

        self.assertIn('global', dumped)
        self.assertEqual(RetentionConfig.model_validate(dumped), config)


if __name__ == '__main__':
    unittest.main()
