"""Tests for settings, errors and logging."""

import json
import logging

import pytest

from baseline.config import Settings, get_settings, reset_settings
from baseline.core.errors import (
    BaselineError,
    CommandError,
    ConfigError,
    InstallTimeoutError,
    PluginError,
    PluginNotInstalledError,
    format_exception_chain,
)
from baseline.core.logging import JSONFormatter, get_logger, reset_logging, setup_logging


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BASELINE_INSTALL_TIMEOUT")
        settings = Settings()

        assert settings.plugins.install_timeout == 120.0
        assert settings.execution.concurrency == 4
        assert settings.log.format == "text"
        assert settings.is_valid()

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BASELINE_CONCURRENCY", "8")
        monkeypatch.setenv("BASELINE_LOG_LEVEL", "debug")
        monkeypatch.setenv("BASELINE_PLUGIN_REGISTRY", "https://plugins.example.com/index.json")
        reset_settings()

        settings = get_settings()

        assert settings.execution.concurrency == 8
        assert settings.log.level == "DEBUG"
        assert settings.plugins.registry_url == "https://plugins.example.com/index.json"
        assert settings.plugins.entry_points_enabled is False

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_validation_issues(self, monkeypatch):
        monkeypatch.setenv("BASELINE_INSTALL_TIMEOUT", "0")
        monkeypatch.setenv("BASELINE_CONCURRENCY", "0")
        monkeypatch.setenv("BASELINE_LOG_FORMAT", "xml")

        issues = Settings().validate()

        assert len(issues) == 3
        assert any("BASELINE_LOG_FORMAT" in issue for issue in issues)


class TestErrors:
    def test_user_friendly_format(self):
        error = BaselineError("Something broke", details="disk full", suggestion="free some space")

        text = error.format_user_friendly()

        assert text.splitlines() == ["✗ Something broke", "   Details: disk full", "   Try: free some space"]

    def test_plugin_error_details(self):
        error = PluginError("Cannot load", plugin_id="docker", source="pypi")
        assert error.details == "Plugin: docker, Source: pypi"

    def test_not_installed(self):
        error = PluginNotInstalledError("docker")
        assert error.message == "Plugin docker is not installed"
        assert "baseline plugin list" in error.suggestion

    def test_install_timeout_default_suggestion(self):
        error = InstallTimeoutError("Too slow", timeout_seconds=5, plugin_id="docker")
        assert "BASELINE_INSTALL_TIMEOUT" in error.suggestion
        assert isinstance(error, PluginError)

    def test_command_and_config_details(self):
        assert CommandError("fail", repo="api", exit_code=2).details == "Repository: api, Exit code: 2"
        assert ConfigError("bad", config_path="/w/baseline.json").details == "File: /w/baseline.json"

    def test_exception_chain(self):
        error = ConfigError("bad config", cause=ValueError("line 3"))
        text = format_exception_chain(error)
        assert "Caused by:" in text
        assert "ValueError: line 3" in text


class TestLogging:
    @pytest.fixture(autouse=True)
    def fresh_logging(self):
        reset_logging()
        yield
        reset_logging()

    def test_json_formatter_fields(self):
        logger = logging.getLogger("baseline.test")
        record = logger.makeRecord(
            "baseline.test", logging.INFO, __file__, 1, "Installed plugin docker", None, None,
            extra={"component": "installer", "plugin": "docker", "extra_data": {"origin": "pypi"}},
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Installed plugin docker"
        assert data["component"] == "installer"
        assert data["plugin"] == "docker"
        assert data["origin"] == "pypi"

    def test_file_logging(self, temp_dir):
        setup_logging(level="DEBUG", format_type="json", log_dir=temp_dir, console_enabled=False)

        get_logger("core.resolution").command_resolved("api", "test", "pytest", "python")
        for handler in logging.getLogger("baseline").handlers:
            handler.flush()

        line = (temp_dir / "baseline.log").read_text().strip().splitlines()[-1]
        data = json.loads(line)
        assert data["logger"] == "baseline.core.resolution"
        assert data["repo"] == "api"
        assert data["origin"] == "python"

    def test_setup_is_idempotent(self, temp_dir):
        setup_logging(console_enabled=True, file_enabled=False)
        setup_logging(level="DEBUG", log_dir=temp_dir)

        assert logging.getLogger("baseline").level == logging.WARNING
        assert not (temp_dir / "baseline.log").exists()
