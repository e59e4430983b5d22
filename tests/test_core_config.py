"""
Tests for settings and logging configuration.
"""

from crm_import.core.config import Settings
from crm_import.core.logging_config import QUIET_LOGGERS, build_logging_config


class TestSettings:

    def test_only_import_settings_are_exposed(self):
        assert "debug" not in Settings.model_fields


class TestLoggingConfig:

    def test_package_logger_follows_requested_level(self):
        config = build_logging_config("debug")
        assert config["loggers"]["crm_import"] == {"level": "DEBUG"}
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_library_chatter_is_quieted(self):
        loggers = build_logging_config("INFO")["loggers"]
        for name, level in QUIET_LOGGERS.items():
            assert loggers[name] == {"level": level}
        assert loggers["sqlalchemy.engine"] == {"level": "WARNING"}

    def test_lines_carry_the_worker_thread(self):
        config = build_logging_config("INFO")
        assert "%(threadName)s" in config["formatters"]["import"]["format"]
