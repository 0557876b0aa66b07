"""Tests for settings loading and layering."""

import sys
from pathlib import Path

import pytest

from nahui.config import MongoConfig, ServerConfig, Settings, load_settings
from nahui.utils.platform import get_config_dir


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "PORT", "MONGO_URL", "MONGO_USERNAME", "MONGO_PASSWORD", "NODE_ENV",
        "NAHUI_CONFIG", "NAHUI_SERVER__PORT", "NAHUI_MONGO__URL", "NAHUI_ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NAHUI_CONFIG_DIR", str(tmp_path / "config"))


class TestDefaults:
    def test_server_defaults(self):
        cfg = ServerConfig()
        assert cfg.port == 3000
        assert cfg.bind == "0.0.0.0"
        assert cfg.webhook_path == "/nahui-gpt/income"
        assert cfg.health_path == "/health"
        assert cfg.max_body_bytes == 10 * 1024 * 1024
        assert cfg.cors_origins == ["*"]

    def test_mongo_defaults(self):
        cfg = MongoConfig()
        assert cfg.url == ""
        assert cfg.default_database == "webhook-server"
        assert cfg.collection_name == "nahui-gpt-requests"

    def test_settings_defaults(self):
        settings = Settings()
        assert settings.environment == "production"
        assert settings.is_development is False
        assert settings.log_redact is True
        assert "authorization" in settings.active_redact_keys

    def test_redaction_off(self):
        settings = Settings(log_redact=False)
        assert settings.active_redact_keys == []


class TestLoadSettings:
    def test_no_sources(self):
        settings = load_settings()
        assert settings.server.port == 3000
        assert settings.mongo.url == ""

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "nahui.yaml"
        path.write_text(
            "server:\n  port: 8080\n  trust_proxy: true\n"
            "mongo:\n  url: mongodb://yaml-host/app\n"
            "environment: development\n"
        )
        settings = load_settings(path)
        assert settings.server.port == 8080
        assert settings.server.trust_proxy is True
        assert settings.server.health_path == "/health"
        assert settings.mongo.url == "mongodb://yaml-host/app"
        assert settings.is_development is True

    def test_default_config_dir(self, tmp_path):
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("log_level: DEBUG\n")
        assert load_settings().log_level == "DEBUG"

    def test_plain_env_vars(self, monkeypatch):
        monkeypatch.setenv("PORT", "4000")
        monkeypatch.setenv("MONGO_URL", "mongodb://env-host:27017")
        monkeypatch.setenv("MONGO_USERNAME", "app")
        monkeypatch.setenv("MONGO_PASSWORD", "pw")
        monkeypatch.setenv("NODE_ENV", "development")
        settings = load_settings()
        assert settings.server.port == 4000
        assert settings.mongo.url == "mongodb://env-host:27017"
        assert settings.mongo.username == "app"
        assert settings.mongo.password == "pw"
        assert settings.is_development is True

    def test_plain_env_overrides_yaml(self, monkeypatch, tmp_path):
        path = tmp_path / "nahui.yaml"
        path.write_text("server:\n  port: 8080\n  bind: 127.0.0.1\n")
        monkeypatch.setenv("PORT", "4000")
        settings = load_settings(path)
        assert settings.server.port == 4000
        assert settings.server.bind == "127.0.0.1"

    def test_prefixed_env_wins(self, monkeypatch):
        monkeypatch.setenv("PORT", "4000")
        monkeypatch.setenv("NAHUI_SERVER__PORT", "5000")
        settings = load_settings()
        assert settings.server.port == 5000

    def test_missing_yaml_path_ignored(self, tmp_path):
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.server.port == 3000


class TestConfigDir:
    def test_override(self, tmp_path):
        assert get_config_dir() == tmp_path / "config"

    def test_xdg_on_linux(self, monkeypatch, tmp_path):
        monkeypatch.delenv("NAHUI_CONFIG_DIR")
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert get_config_dir() == tmp_path / "xdg" / "nahui"

    def test_macos(self, monkeypatch):
        monkeypatch.delenv("NAHUI_CONFIG_DIR")
        monkeypatch.setattr(sys, "platform", "darwin")
        assert get_config_dir() == Path.home() / "Library" / "Application Support" / "nahui"

    def test_windows_appdata(self, monkeypatch, tmp_path):
        monkeypatch.delenv("NAHUI_CONFIG_DIR")
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("APPDATA", str(tmp_path / "roaming"))
        assert get_config_dir() == tmp_path / "roaming" / "nahui"
