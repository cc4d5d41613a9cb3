"""
Configuration management for the retention system.

This module handles loading, validation, and management of retention configurations.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ('sqlite', 'memory')
EXPORT_FORMATS = ('json', 'csv')


class GlobalSettings(BaseModel):
    """Retention window and master switch."""
    enabled: bool = True
    retention_days: int = 180

    @field_validator('retention_days')
    @classmethod
    def check_retention_days(cls, value: int) -> int:
        if value < 0:
            raise ValueError("retention_days must not be negative")
        return value


class StorageSettings(BaseModel):
    """Where the staff tree and the history ledger are persisted."""
    backend: str = 'sqlite'
    db_path: str = 'data/ungdomsstod.db'
    memory_fallback: bool = True
    autosave: bool = True

    @field_validator('backend')
    @classmethod
    def check_backend(cls, value: str) -> str:
        if value not in STORAGE_BACKENDS:
            raise ValueError(f"backend must be one of {', '.join(STORAGE_BACKENDS)}")
        return value


class ExportSettings(BaseModel):
    directory: str = 'exports/retention'
    export_before_cleanup: bool = True
    formats: List[str] = Field(default_factory=lambda: list(EXPORT_FORMATS))

    @field_validator('formats')
    @classmethod
    def check_formats(cls, value: List[str]) -> List[str]:
        unknown = [fmt for fmt in value if fmt not in EXPORT_FORMATS]
        if unknown:
            raise ValueError(f"unknown export formats: {', '.join(unknown)}")
        if not value:
            raise ValueError("at least one export format is required")
        return value


class AuditSettings(BaseModel):
    enabled: bool = True
    logs_dir: str = 'logs/retention'
    actor: str = 'system'


class RetentionConfig(BaseModel):
    """Complete retention system configuration."""
    model_config = ConfigDict(populate_by_name=True)

    global_settings: GlobalSettings = Field(default_factory=GlobalSettings, alias='global')
    storage: StorageSettings = Field(default_factory=StorageSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)


class RetentionConfigManager:
    """Manages retention system configuration."""

    def __init__(self, config_path: str):
        self.config_path = Path(config_path)
        self.config = self._load_config()

    def _load_config(self) -> RetentionConfig:
        """Load configuration from YAML file."""
        try:
            if self.config_path.exists():
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            else:
                logger.warning(f"Config file not found at {self.config_path}. Using defaults.")
                config_data = self._get_default_config()
                self._save_config(config_data)

            return self._parse_config(config_data)

        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.error(f"Failed to load config: {e}")
            return self._parse_config(self._get_default_config())

    def _parse_config(self, config_data: Dict[str, Any]) -> RetentionConfig:
        """Parse configuration data into RetentionConfig object."""
        return RetentionConfig.model_validate(config_data)

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return RetentionConfig().model_dump(by_alias=True)

    def _save_config(self, config_data: Dict[str, Any]):
        """Save configuration to YAML file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.dump(config_data, f, default_flow_style=False, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    def is_enabled(self) -> bool:
        """Check if retention system is enabled."""
        return self.config.global_settings.enabled

    def get_retention_days(self) -> int:
        return self.config.global_settings.retention_days
