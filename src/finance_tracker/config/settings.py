import json
import os
from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

# Package defaults (bundled with code)
PACKAGE_CONFIG_DIR = Path(__file__).parent / "defaults"

# User configs (in project root, gitignored)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
USER_CONFIG_DIR = PROJECT_ROOT / "config"

DB_PATH_ENV_VAR = "FINANCE_TRACKER_DB"


class ConfigLoader:
    """Load configuration with user overrides"""

    @staticmethod
    def load_config(config_name: str) -> Dict[str, Any]:
        """
        Load config with fallback: user config -> default config

        Args:
            config_name: Name of the config file (e.g., 'settings.json')

        Raises:
            FileNotFoundError: If no config file was found

        Returns:
            Parsed JSON configuration
        """
        user_config_path = USER_CONFIG_DIR / config_name
        if user_config_path.exists():
            with open(user_config_path) as f:
                return json.load(f)

        default_config_path = PACKAGE_CONFIG_DIR / config_name
        if default_config_path.exists():
            with open(default_config_path) as f:
                return json.load(f)

        raise FileNotFoundError(
            f"Config file '{config_name}' not found in:\n"
            f" - {user_config_path}\n"
            f" - {default_config_path}"
        )

    @staticmethod
    def load_settings_config() -> Dict[str, Any]:
        """Load application settings"""
        return ConfigLoader.load_config('settings.json')

    @staticmethod
    def load_categories_config() -> Dict[str, Any]:
        """Load the default category catalog"""
        return ConfigLoader.load_config('categories.json')

    @staticmethod
    def load_rules_config() -> Dict[str, Any]:
        """Load the default categorization rules"""
        return ConfigLoader.load_config('rules.json')


@dataclass(frozen=True)
class AppSettings:
    """Application settings."""

    db_path: Path = Path("data/finance_tracker.db")
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    similarity_limit: int = 10
    default_alert_threshold: Decimal = Decimal("0.80")
    rules_page_limit: int = 20

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        """Build settings from a config dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}

        if "db_path" in values:
            values["db_path"] = Path(values["db_path"])
        if "log_dir" in values:
            values["log_dir"] = Path(values["log_dir"])
        if "log_level" in values:
            values["log_level"] = str(values["log_level"]).upper()
        if "similarity_limit" in values:
            values["similarity_limit"] = int(values["similarity_limit"])
        if "rules_page_limit" in values:
            values["rules_page_limit"] = int(values["rules_page_limit"])
        if "default_alert_threshold" in values:
            values["default_alert_threshold"] = Decimal(str(values["default_alert_threshold"]))

        return cls(**values)


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> AppSettings:
    """
    Load settings from settings.json, then the environment, then overrides.

    Args:
        overrides: Values that win over everything else (e.g. CLI options).
            None values are ignored.

    Returns:
        AppSettings
    """
    try:
        data = dict(ConfigLoader.load_settings_config())
    except FileNotFoundError:
        data = {}

    env_db = os.environ.get(DB_PATH_ENV_VAR)
    if env_db:
        data["db_path"] = env_db

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    return AppSettings.from_dict(data)

