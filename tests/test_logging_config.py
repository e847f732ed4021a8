"""Tests for logging setup and the Supabase log handler."""

import logging
from unittest.mock import MagicMock

import pytest

from logging_config import JSONFormatter, PlainFormatter, SupabaseHandler, setup_logging


def make_record(message: str, level=logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("oauth.flow", level, __file__, 10, message, None, None)


def test_json_formatter_extracts_tag():
    entry = JSONFormatter("svc").format(make_record("[TOKEN] Tokens issued"))

    assert entry["service"] == "svc"
    assert entry["tag"] == "TOKEN"
    assert entry["message"] == "Tokens issued"
    assert entry["level"] == "INFO"


def test_json_formatter_without_tag():
    entry = JSONFormatter().format(make_record("plain message"))

    assert entry["tag"] is None
    assert entry["message"] == "plain message"


@pytest.fixture
def supabase_client():
    return MagicMock()


def test_handler_flushes_when_batch_is_full(supabase_client):
    handler = SupabaseHandler(supabase_client, batch_size=2, flush_interval=3600)
    handler.setFormatter(JSONFormatter("svc"))
    try:
        handler.emit(make_record("[AUTH] one"))
        handler.emit(make_record("[AUTH] two"))

        supabase_client.table.assert_called_with("logs")
        rows = supabase_client.table.return_value.insert.call_args.args[0]
        assert [row["message"] for row in rows] == ["one", "two"]
    finally:
        handler.close()


def test_handler_survives_supabase_failure(supabase_client, capsys):
    supabase_client.table.return_value.insert.return_value.execute.side_effect = RuntimeError("down")
    handler = SupabaseHandler(supabase_client, batch_size=1, flush_interval=3600)
    try:
        handler.emit(make_record("message"))
    finally:
        handler.close()

    assert "Failed to send logs to Supabase" in capsys.readouterr().err


def test_setup_logging_without_supabase():
    root = setup_logging(level="DEBUG")
    try:
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, PlainFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers.clear()


def test_setup_logging_with_supabase(supabase_client):
    root = setup_logging(supabase_client=supabase_client)
    try:
        handlers = [h for h in root.handlers if isinstance(h, SupabaseHandler)]
        assert len(handlers) == 1
    finally:
        for handler in root.handlers:
            if isinstance(handler, SupabaseHandler):
                handler.close()
        root.handlers.clear()
