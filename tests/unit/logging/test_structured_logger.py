"""
Tests unitaires pour Logging - Structured Logger

Tests des invariants:
- LOG_001: Format JSON structuré obligatoire
- LOG_002: Champs obligatoires: timestamp, level, correlation_id, logger, message
- LOG_003: Timestamp format ISO 8601 avec timezone UTC
- LOG_004: Secrets et tokens JAMAIS en clair dans les logs
"""

import asyncio
import json
import re
from datetime import datetime, timezone

import pytest

from src.logging import (
    ContextualLogger,
    IStructuredLogger,
    LogConfig,
    LogEntry,
    LogLevel,
    MissingRequiredFieldError,
    StructuredLogger,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)


def make_logger(name: str = "test", **config) -> tuple:
    lines: list = []
    logger = StructuredLogger(name, config=LogConfig(**config), output_handler=lines.append)
    return logger, lines


class TestLOG001JsonFormat:
    """Tests LOG_001: Format JSON structuré obligatoire."""

    def test_LOG_001_output_is_valid_json(self) -> None:
        logger, lines = make_logger()

        logger.info("Test message")

        assert len(lines) == 1
        assert isinstance(json.loads(lines[0]), dict)

    def test_LOG_001_json_includes_extra(self) -> None:
        logger, _ = make_logger()

        entry = logger.info("Test", user_id="u-123", action="login")
        assert entry is not None

        parsed = json.loads(entry.to_json())
        assert parsed["extra"] == {"user_id": "u-123", "action": "login"}

    def test_LOG_001_no_extra_key_when_empty(self) -> None:
        logger, _ = make_logger()

        parsed = json.loads(logger.info("Test").to_json())

        assert "extra" not in parsed

    def test_LOG_001_non_serializable_extra_uses_str(self) -> None:
        logger, lines = make_logger()
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)

        logger.info("Test", at=now)

        assert json.loads(lines[0])["extra"]["at"] == str(now)

    def test_implements_interface(self) -> None:
        logger, _ = make_logger()
        assert isinstance(logger, IStructuredLogger)


class TestLOG002RequiredFields:
    """Tests LOG_002: Champs obligatoires."""

    def test_LOG_002_all_fields_present(self) -> None:
        logger, lines = make_logger("auth.session_store")

        logger.info("Session created")

        parsed = json.loads(lines[0])
        assert set(parsed.keys()) >= {"timestamp", "level", "correlation_id", "logger", "message"}
        assert parsed["logger"] == "auth.session_store"
        assert parsed["level"] == "INFO"

    def test_LOG_002_empty_message_raises(self) -> None:
        logger, _ = make_logger()

        with pytest.raises(MissingRequiredFieldError) as exc_info:
            logger.info("")

        assert exc_info.value.field_name == "message"

    def test_LOG_002_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            StructuredLogger("  ")


class TestLOG003Timestamp:
    """Tests LOG_003: Timestamp ISO 8601 UTC."""

    def test_LOG_003_format(self) -> None:
        logger, _ = make_logger()

        entry = logger.info("Test")

        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$", entry.timestamp)

    def test_LOG_003_is_current_utc(self) -> None:
        logger, _ = make_logger()

        entry = logger.info("Test")
        parsed = datetime.strptime(entry.timestamp, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)

        assert abs((datetime.now(timezone.utc) - parsed).total_seconds()) < 5


class TestLOG004Masking:
    """Tests LOG_004: Secrets et tokens JAMAIS en clair."""

    def test_LOG_004_sensitive_extra_masked(self) -> None:
        logger, lines = make_logger()

        logger.info("Login", password="hunter2", refresh_token="abc", user_id="u-1")

        extra = json.loads(lines[0])["extra"]
        assert extra["password"] == "***MASKED***"
        assert extra["refresh_token"] == "***MASKED***"
        assert extra["user_id"] == "u-1"
        assert "hunter2" not in lines[0]

    def test_LOG_004_bearer_in_message_masked(self) -> None:
        logger, lines = make_logger()

        logger.warn("Rejected header Bearer abc.def.ghi from client")

        assert "abc.def.ghi" not in lines[0]
        assert "Rejected header" in lines[0]

    def test_LOG_004_masking_can_be_disabled(self) -> None:
        logger, _ = make_logger(mask_sensitive=False)

        entry = logger.info("Test", password="visible")

        assert entry.extra["password"] == "visible"


class TestLevels:
    """Tests filtrage par niveau."""

    def test_below_min_level_filtered(self) -> None:
        logger, lines = make_logger(min_level=LogLevel.WARN)

        assert logger.debug("d") is None
        assert logger.info("i") is None
        assert logger.warn("w") is not None
        assert logger.error("e") is not None
        assert logger.critical("c") is not None
        assert len(lines) == 3

    def test_priority_order(self) -> None:
        levels = [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR, LogLevel.CRITICAL]
        priorities = [LogLevel.get_priority(level) for level in levels]

        assert priorities == sorted(priorities)

    def test_get_entries_by_level(self) -> None:
        logger, _ = make_logger()
        logger.info("a")
        logger.error("b")
        logger.error("c")

        assert len(logger.get_entries_by_level(LogLevel.ERROR)) == 2


class TestCorrelation:
    """Résolution du correlation_id."""

    def setup_method(self) -> None:
        set_correlation_id(None)

    def test_explicit_wins(self) -> None:
        logger, _ = make_logger(default_correlation_id="default-id")

        with correlation_scope("ctx-id"):
            entry = logger.log(LogLevel.INFO, "Test", correlation_id="explicit-id")

        assert entry.correlation_id == "explicit-id"

    def test_context_before_default(self) -> None:
        logger, _ = make_logger(default_correlation_id="default-id")

        with correlation_scope("ctx-id"):
            entry = logger.info("Test")

        assert entry.correlation_id == "ctx-id"

    def test_default_used_outside_scope(self) -> None:
        logger, _ = make_logger(default_correlation_id="default-id")

        assert logger.info("Test").correlation_id == "default-id"

    def test_generated_uuid_when_nothing_set(self) -> None:
        logger, _ = make_logger()

        entry = logger.info("Test")

        assert re.match(r"^[0-9a-f-]{36}$", entry.correlation_id)

    def test_scope_restores_previous_value(self) -> None:
        with correlation_scope("outer"):
            with correlation_scope("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"
        assert get_correlation_id() is None

    def test_scope_generates_id_when_none(self) -> None:
        with correlation_scope() as corr:
            assert corr
            assert get_correlation_id() == corr

    @pytest.mark.asyncio
    async def test_context_isolated_between_tasks(self) -> None:
        logger, _ = make_logger()

        async def handle(request_id: str) -> LogEntry:
            with correlation_scope(request_id):
                await asyncio.sleep(0)
                return logger.info("Handled")

        first, second = await asyncio.gather(handle("req-1"), handle("req-2"))

        assert first.correlation_id == "req-1"
        assert second.correlation_id == "req-2"

    def test_get_entries_by_correlation(self) -> None:
        logger, _ = make_logger()
        with correlation_scope("abc"):
            logger.info("one")
            logger.info("two")
        logger.info("three")

        assert len(logger.get_entries_by_correlation("abc")) == 2

    def test_contextual_logger(self) -> None:
        logger, _ = make_logger()

        contextual = logger.with_context(correlation_id="fixed")

        assert isinstance(contextual, ContextualLogger)
        assert contextual.info("Test").correlation_id == "fixed"
        assert contextual.error("Test").level == LogLevel.ERROR


class TestEntryBuffer:
    """Tampon d'entrées capturées."""

    def test_buffer_is_bounded(self) -> None:
        logger, lines = make_logger(max_entries=3)

        for i in range(5):
            logger.info(f"message {i}")

        entries = logger.get_entries()
        assert [e.message for e in entries] == ["message 2", "message 3", "message 4"]
        assert len(lines) == 5

    def test_clear_entries(self) -> None:
        logger, _ = make_logger()
        logger.info("Test")

        logger.clear_entries()

        assert logger.get_entries() == []

    def test_default_output_is_stderr(self, capsys) -> None:
        logger = StructuredLogger("stderr-test")

        logger.info("To stderr")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert json.loads(captured.err.strip())["message"] == "To stderr"
