"""Tests for configuration and error utilities."""

import json
import logging

import pytest

from cluster_debug.config import Settings, get_settings
from cluster_debug.errors import (
    ConfigurationError,
    ErrorCategory,
    log_and_format_error,
    setup_logger,
)


class TestSettings:
    """Tests for environment settings."""

    def test_defaults(self):
        """Test settings with no environment."""
        settings = get_settings()
        assert settings.worker_debug_port is None
        assert settings.max_debug_port == 65535
        assert settings.log_level == "INFO"
        assert settings.log_file is None

    def test_worker_debug_port(self, monkeypatch):
        """Test CLUSTER_WORKER_DEBUG_PORT."""
        monkeypatch.setenv("CLUSTER_WORKER_DEBUG_PORT", "9000")
        assert get_settings().worker_debug_port == 9000

    def test_empty_override_is_unset(self, monkeypatch):
        """Test that an empty variable counts as absent."""
        monkeypatch.setenv("CLUSTER_WORKER_DEBUG_PORT", "")
        assert get_settings().worker_debug_port is None

    def test_non_numeric_override_fails(self, monkeypatch):
        """Test that a non-numeric override fails fast."""
        monkeypatch.setenv("CLUSTER_WORKER_DEBUG_PORT", "abc")
        with pytest.raises(ConfigurationError) as exc_info:
            get_settings()
        assert "worker_debug_port" in str(exc_info.value)

    @pytest.mark.parametrize("value", ["0", "65536", "-1"])
    def test_out_of_range_override_fails(self, monkeypatch, value):
        """Test that ports outside 1..65535 are rejected."""
        monkeypatch.setenv("CLUSTER_WORKER_DEBUG_PORT", value)
        with pytest.raises(ConfigurationError):
            get_settings()

    def test_env_file(self, tmp_path):
        """Test loading from a .env file in the working directory."""
        (tmp_path / ".env").write_text("CLUSTER_WORKER_DEBUG_PORT=9500\nCLUSTER_LOG_LEVEL=DEBUG\n")
        settings = get_settings()
        assert settings.worker_debug_port == 9500
        assert settings.log_level == "DEBUG"

    def test_explicit_values(self):
        """Test constructing settings directly."""
        settings = Settings(worker_debug_port=9100, max_debug_port=9200)
        assert settings.worker_debug_port == 9100
        assert settings.max_debug_port == 9200


class TestLogging:
    """Tests for logger setup and error formatting."""

    def test_setup_logger_idempotent(self):
        """Test that handlers are only added once."""
        logger = setup_logger("cluster_debug.test_idempotent")
        count = len(logger.handlers)
        assert setup_logger("cluster_debug.test_idempotent") is logger
        assert len(logger.handlers) == count == 1

    def test_json_error_log(self, tmp_path):
        """Test that errors are written to the file as JSON."""
        log_file = tmp_path / "errors.log"
        logger = setup_logger("cluster_debug.test_json", log_file=str(log_file))
        logger.info("not written")
        logger.error("port trouble")
        for handler in logger.handlers:
            handler.flush()

        lines = log_file.read_text().strip().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["message"] == "port trouble"
        assert record["levelname"] == "ERROR"

    def test_log_and_format_error(self, caplog):
        """Test error code format and logging."""
        with caplog.at_level(logging.ERROR, logger="cluster_debug"):
            message = log_and_format_error(
                "fork", RuntimeError("boom"), ErrorCategory.FORK, worker_id=3
            )

        assert message.startswith("An error occurred (code: FORK-ERR-")
        assert "worker_id=3" in caplog.text
        assert "boom" in caplog.text

    def test_log_and_format_error_stable_code(self):
        """Test that the same function name always gives the same code."""
        first = log_and_format_error("exit_listener", ValueError("x"), "EXIT", user_message="Failed")
        second = log_and_format_error("exit_listener", ValueError("y"), "EXIT", user_message="Failed")
        assert first == second
        assert first.startswith("Failed (code: EXIT-ERR-")
