"""Tests for application configuration and logging setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest
from pydantic import ValidationError

from portfel.config import AppConfig
from portfel.logging_config import configure_logging


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()
        assert config.storage_backend == "sqlite"
        assert config.currency == "PLN"
        assert config.history_limit == 100
        assert config.database_path.name == "portfel.db"

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PORTFEL_STORAGE_BACKEND", "Memory")
        monkeypatch.setenv("PORTFEL_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("PORTFEL_HISTORY_LIMIT", "20")

        config = AppConfig()

        assert config.storage_backend == "memory"
        assert config.history_limit == 20
        assert config.database_path == tmp_path / "portfel.db"

    @pytest.mark.parametrize(
        "field,value",
        [("storage_backend", "postgres"), ("portfolio_cache_ttl_seconds", -1), ("history_limit", 0)],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            AppConfig(**{field: value})


class TestConfigureLogging:
    """Tests for configure_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            handler.close()
        root.handlers = handlers
        root.setLevel(level)

    def test_file_handler_created(self, tmp_path):
        config = AppConfig(data_dir=tmp_path, log_level="warning")

        configure_logging(config)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        assert (tmp_path / "logs").is_dir()

    def test_blank_log_file_disables_file_logging(self, tmp_path):
        configure_logging(AppConfig(data_dir=tmp_path, log_file=""))

        assert not any(isinstance(h, RotatingFileHandler) for h in logging.getLogger().handlers)
        assert not (tmp_path / "logs").exists()

    def test_debug_overrides_level(self, tmp_path):
        configure_logging(AppConfig(data_dir=tmp_path, debug=True), log_to_file=False)
        assert logging.getLogger().level == logging.DEBUG
