"""
Configuration management for the retcheck engine.

This module provides configuration loading with sensible defaults for
limits, severities, and other engine settings.
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


CONFIG_FILE_NAMES = [".retcheck.yml", ".retcheck.yaml", "retcheck.yml", "retcheck.yaml"]

# Fields merged key-by-key with the defaults instead of replaced
_DICT_FIELDS = ("rule_severities", "language_configs")

DEFAULTS: Dict[str, Any] = {
    "enabled_rules": ["*"],
    "max_findings_per_file": 50,
    "max_total_findings": 1000,
    "severity_threshold": "info",
    "exclude": [],
    "rule_severities": {
        "errors.unused_return_value": "warn",
    },
    "language_configs": {
        "typescript": {},
    },
}


@dataclass
class EngineConfig:
    """Configuration for the retcheck engine."""

    # Rule execution settings
    enabled_rules: List[str]
    max_findings_per_file: int = 50
    max_total_findings: int = 1000

    # Findings below this severity are dropped ("info", "warn", "error")
    severity_threshold: str = "info"

    # fnmatch patterns of paths to skip
    exclude: List[str] = None

    # Rule severity overrides (rule_id -> severity)
    rule_severities: Dict[str, str] = None

    # Language-specific settings
    language_configs: Dict[str, Dict[str, Any]] = None

    def __post_init__(self):
        if self.exclude is None:
            self.exclude = []
        if self.rule_severities is None:
            self.rule_severities = {}
        if self.language_configs is None:
            self.language_configs = {}


def _merge(defaults: Dict[str, Any], file_config: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in file_config.items():
        if key not in merged:
            logger.warning("Ignoring unknown config key: %s", key)
            continue
        if key in _DICT_FIELDS and isinstance(value, dict):
            if key == "language_configs":
                for lang, lang_config in value.items():
                    merged[key].setdefault(lang, {}).update(lang_config or {})
            else:
                merged[key].update(value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load configuration from file or use defaults.

    Args:
        config_path: Path to config file (YAML). If None, uses defaults.

    Returns:
        EngineConfig instance
    """
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f) or {}
            if not isinstance(file_config, dict):
                raise ValueError("top-level YAML value must be a mapping")
            return EngineConfig(**_merge(DEFAULTS, file_config))
        except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
            logger.warning("Failed to load config from %s: %s; using default configuration", config_path, e)

    return EngineConfig(**copy.deepcopy(DEFAULTS))


def get_default_config() -> EngineConfig:
    """Get default configuration without loading from file."""
    return load_config(None)


def save_config(config: EngineConfig, config_path: str) -> None:
    """
    Save configuration to file.

    Args:
        config: EngineConfig to save
        config_path: Path where to save the config
    """
    config_dict = {
        "enabled_rules": config.enabled_rules,
        "max_findings_per_file": config.max_findings_per_file,
        "max_total_findings": config.max_total_findings,
        "severity_threshold": config.severity_threshold,
        "exclude": config.exclude,
        "rule_severities": config.rule_severities,
        "language_configs": config.language_configs,
    }

    directory = os.path.dirname(config_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump(config_dict, f, default_flow_style=False, indent=2)


def find_config_file(start_path: str = ".") -> Optional[str]:
    """
    Find configuration file by walking up the directory tree.

    Looks for files in this order:
    1. .retcheck.yml
    2. .retcheck.yaml
    3. retcheck.yml
    4. retcheck.yaml

    Args:
        start_path: File or directory to start searching from

    Returns:
        Path to config file or None if not found
    """
    current_path = os.path.abspath(start_path)
    if os.path.isfile(current_path):
        current_path = os.path.dirname(current_path)

    while True:
        for config_name in CONFIG_FILE_NAMES:
            config_path = os.path.join(current_path, config_name)
            if os.path.exists(config_path):
                return config_path

        parent_path = os.path.dirname(current_path)
        if parent_path == current_path:
            # Reached the root directory
            break
        current_path = parent_path

    return None


def get_rule_severity(rule_id: str, config: EngineConfig, default_severity: str = "warn") -> str:
    """
    Get the configured severity for a rule, falling back to default.

    Args:
        rule_id: Rule identifier (e.g., "errors.unused_return_value")
        config: Engine configuration
        default_severity: Fallback severity if not configured

    Returns:
        Severity level ("info", "warn", or "error")
    """
    if config.rule_severities and rule_id in config.rule_severities:
        return config.rule_severities[rule_id]
    return default_severity
