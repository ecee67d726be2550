"""Tests for environment configuration and logging setup."""

import json
import logging

import pytest

from avatar_mcp.config import DEFAULT_MCP_SERVER_URL, ClientConfig, mask_secret
from avatar_mcp.errors import ConfigError
from avatar_mcp.logging import (
    TRACE_LEVEL,
    ConsoleFormatter,
    StructuredFormatter,
    get_logger,
    setup_logging,
    summarize,
)

ENV_VARS = [
    "MCP_API_KEY",
    "MCP_SERVER_URL",
    "TAVUS_API_KEY",
    "TAVUS_BASE_URL",
    "TAVUS_REPLICA_ID",
    "TAVUS_PERSONA_ID",
    "OPENROUTER_API_KEY",
    "CHAT_MODEL",
    "HTTP_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestClientConfig:
    """Configuration from the environment."""

    def test_defaults(self, clean_env):
        config = ClientConfig.from_env()

        assert config.mcp_server_url == DEFAULT_MCP_SERVER_URL
        assert config.remote_enabled
        assert config.timeout == 10.0
        assert config.mcp_api_key == ""

    def test_reads_environment(self, clean_env):
        clean_env.setenv("MCP_API_KEY", "key-5678")
        clean_env.setenv("TAVUS_REPLICA_ID", "r1")
        clean_env.setenv("HTTP_TIMEOUT", "2.5")

        config = ClientConfig.from_env()

        assert config.mcp_api_key == "key-5678"
        assert config.replica_id == "r1"
        assert config.timeout == 2.5

    def test_empty_server_url_disables_remote(self, clean_env):
        clean_env.setenv("MCP_SERVER_URL", "")

        config = ClientConfig.from_env()

        assert config.mcp_server_url is None
        assert not config.remote_enabled

    @pytest.mark.parametrize("raw", ["soon", "0", "-1"])
    def test_invalid_timeout(self, clean_env, raw):
        clean_env.setenv("HTTP_TIMEOUT", raw)

        with pytest.raises(ConfigError):
            ClientConfig.from_env()


def test_mask_secret():
    assert mask_secret("abcdefgh") == "***efgh"
    assert mask_secret("") == "Not set"


class TestLogging:
    """Logger namespace, levels and structured output."""

    def test_get_logger_namespaces(self):
        assert get_logger("transport").name == "avatar_mcp.transport"
        assert get_logger("avatar_mcp.session").name == "avatar_mcp.session"

    def test_verbosity_levels(self):
        assert setup_logging(verbosity=0).level == logging.INFO
        assert setup_logging(verbosity=1).level == logging.DEBUG
        assert setup_logging(verbosity=2).level == TRACE_LEVEL
        assert setup_logging(log_level="warning").level == logging.WARNING

    def test_log_file_is_structured(self, tmp_path):
        log_file = tmp_path / "logs" / "avatar.jsonl"
        logger = setup_logging(log_file=log_file)

        get_logger("transport").info("hello", extra={"request_id": 7, "source": "simulated"})
        for handler in logger.handlers:
            handler.flush()

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert records[-1]["message"] == "hello"
        assert records[-1]["request_id"] == 7
        assert records[-1]["source"] == "simulated"

        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

    def test_structured_formatter_skips_missing_extras(self):
        record = logging.LogRecord("avatar_mcp", logging.INFO, __file__, 1, "plain", None, None)

        assert set(json.loads(StructuredFormatter().format(record))) == {
            "timestamp",
            "level",
            "logger",
            "message",
        }


def test_summarize():
    assert summarize("short") == "short"
    assert summarize({"a": 1}) == '{"a": 1}'
    assert summarize("x" * 300, limit=10) == "x" * 10 + "..."


def test_console_formatter_labels_known_fields():
    record = logging.LogRecord("avatar_mcp.transport", logging.WARNING, __file__, 1, "falling back", None, None)
    record.request_id = 3
    record.source = "simulated"
    record.payload = {"large": "value"}

    line = ConsoleFormatter().format(record)

    assert "transport: falling back" in line
    assert line.endswith("(id=3, source=simulated)")
