import pytest
from decimal import Decimal
from pathlib import Path

from finance_tracker.config import settings as settings_module
from finance_tracker.config.settings import AppSettings, ConfigLoader, DB_PATH_ENV_VAR, load_settings


@pytest.fixture
def no_user_config(tmp_path, monkeypatch):
    """Point the user config directory somewhere empty"""
    monkeypatch.setattr(settings_module, "USER_CONFIG_DIR", tmp_path / "config")
    monkeypatch.delenv(DB_PATH_ENV_VAR, raising=False)
    return tmp_path / "config"


@pytest.mark.unit
class TestConfigLoader:

    def test_falls_back_to_packaged_defaults(self, no_user_config):
        config = ConfigLoader.load_categories_config()

        names = [c["name"] for c in config["categories"]]
        assert "Food" in names

    def test_user_config_wins(self, no_user_config):
        # Arrange
        no_user_config.mkdir()
        (no_user_config / "rules.json").write_text('{"rules": []}')

        # Act & Assert
        assert ConfigLoader.load_rules_config() == {"rules": []}

    def test_missing_config_raises(self, no_user_config):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load_config("nope.json")


@pytest.mark.unit
class TestLoadSettings:

    def test_defaults(self, no_user_config):
        settings = load_settings()

        assert settings.db_path == Path("data/finance_tracker.db")
        assert settings.similarity_limit == 10
        assert settings.default_alert_threshold == Decimal("0.80")
        assert settings.rules_page_limit == 20

    def test_environment_overrides_db_path(self, no_user_config, monkeypatch):
        monkeypatch.setenv(DB_PATH_ENV_VAR, "/tmp/other.db")

        assert load_settings().db_path == Path("/tmp/other.db")

    def test_explicit_overrides_win(self, no_user_config, monkeypatch):
        monkeypatch.setenv(DB_PATH_ENV_VAR, "/tmp/other.db")

        settings = load_settings({"db_path": "cli.db", "log_level": None})

        assert settings.db_path == Path("cli.db")
        assert settings.log_level == "INFO"

    def test_from_dict_ignores_unknown_keys(self):
        settings = AppSettings.from_dict({"log_level": "debug", "theme": "dark"})

        assert settings.log_level == "DEBUG"
