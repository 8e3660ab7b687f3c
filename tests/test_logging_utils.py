from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from dynavest.logging_context import (
    get_logging_context,
    with_execution_context,
    with_logging_context,
)
from dynavest.logging_utils import JsonFormatter, setup_logging


def _record(msg: str, *, extra: dict | None = None, exc_info=None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="dynavest.test",
        level=logging.ERROR if exc_info else logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    if extra is not None:
        record.extra = extra
    return record


def test_json_formatter_includes_exception_details() -> None:
    formatter = JsonFormatter()

    try:
        raise ValueError("boom")
    except ValueError:
        rendered = formatter.format(_record("Execution failed", exc_info=sys.exc_info()))

    payload = json.loads(rendered)
    assert payload["message"] == "Execution failed"
    assert payload["error_type"] == "ValueError"
    assert payload["error_message"] == "boom"
    assert "ValueError: boom" in payload["traceback"]


def test_json_formatter_merges_extra_and_context() -> None:
    formatter = JsonFormatter()

    with with_logging_context(tx_hash="0xabc", chain_id=8453, strategy_id=None):
        payload = json.loads(formatter.format(_record("Position created", extra={"amount": "1.5"})))

    assert payload["amount"] == "1.5"
    assert payload["tx_hash"] == "0xabc"
    assert payload["chain_id"] == "8453"
    assert payload["chain"] == "base"
    assert "strategy_id" not in payload
    assert get_logging_context() == {}


def test_nested_context_overrides_and_restores() -> None:
    with with_logging_context(chain_id=8453, tx_hash="0x1"):
        with with_logging_context(tx_hash="0x2"):
            assert get_logging_context() == {"chain_id": "8453", "tx_hash": "0x2"}
        assert get_logging_context()["tx_hash"] == "0x1"

    with with_execution_context(user="0xabc", chain_id=42161) as run_id:
        assert get_logging_context()["run_id"] == run_id
    assert get_logging_context() == {}


def test_unknown_context_field_rejected() -> None:
    with pytest.raises(TypeError, match="cycle_id"):
        with with_logging_context(cycle_id="x"):
            pass


def test_json_formatter_redacts_secrets() -> None:
    formatter = JsonFormatter()

    payload = json.loads(
        formatter.format(
            _record(
                "request failed Authorization: Bearer abcdef123456",
                extra={"ledger_api_token": "supersecretvalue"},
            )
        )
    )

    assert "abcdef123456" not in payload["message"]
    assert payload["ledger_api_token"] != "supersecretvalue"


def test_setup_logging_writes_json_lines_with_chain_name(monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "warning")
    stream = io.StringIO()
    setup_logging(stream=stream)

    with with_execution_context(user="0xabc", chain_id=42161):
        logging.getLogger("dynavest.portfolio").info("dropped below threshold")
        logging.getLogger("dynavest.portfolio").warning(
            "Ledger sync degraded", extra={"extra": {"failures": 1}}
        )

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["chain"] == "arbitrum"
    assert payload["failures"] == 1
    assert payload["level"] == "WARNING"


@pytest.mark.parametrize(
    ("root", "env", "expected_httpx", "expected_httpcore"),
    [
        ("DEBUG", {}, logging.DEBUG, logging.DEBUG),
        ("bogus", {}, logging.INFO, logging.WARNING),
        ("INFO", {"HTTPCORE_LOG_LEVEL": "error"}, logging.INFO, logging.ERROR),
    ],
)
def test_http_client_loggers_follow_root_unless_overridden(
    monkeypatch, root, env, expected_httpx, expected_httpcore
) -> None:
    for name, value in env.items():
        monkeypatch.setenv(name, value)

    setup_logging(root, stream=io.StringIO())

    assert logging.getLogger().level == (logging.DEBUG if root == "DEBUG" else logging.INFO)
    assert logging.getLogger("httpx").level == expected_httpx
    assert logging.getLogger("httpcore").level == expected_httpcore
