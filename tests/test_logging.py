"""Tests for the structured logging system (silver_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from silver_kernel.domain.status import SaleStatus
from silver_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "silver_kernel.test"
        assert "ts" in record

    def test_decimal_keeps_precision(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("balance", extra={"weight": Decimal("94.000"), "cash": Decimal("0.10")})

        record = _parse_log(stream)
        assert record["weight"] == "94.000"
        assert record["cash"] == "0.10"

    def test_enum_and_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("status", extra={"status": SaleStatus.PARTIAL, "sale": uid})

        record = _parse_log(stream)
        assert record["status"] == "partial"
        assert record["sale"] == str(uid)

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", sale_id="s-1", channel="wholesale")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["sale_id"] == "s-1"
        assert record["channel"] == "wholesale"

    def test_ledger_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from silver_kernel.exceptions import SilverReturnExceededError

        try:
            raise SilverReturnExceededError("sale-1", Decimal("5"), Decimal("4.000"))
        except SilverReturnExceededError:
            get_logger("test").error("return_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "SILVER_RETURN_EXCEEDED"
        assert record["exc_type"] == "SilverReturnExceededError"
        assert record["exc_remaining"] == "4.000"
        assert "traceback" in record

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.debug("second")
        assert len(_parse_all_logs(stream)) == 1


class TestLogContext:
    def test_bind_restores_previous(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", customer_id="c-1"):
            assert LogContext.get_all() == {"correlation_id": "inner", "customer_id": "c-1"}
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_ignores_none(self):
        with LogContext.bind(sale_id=None, channel="regular"):
            assert LogContext.get_all() == {"channel": "regular"}

    def test_bind_rejects_unknown_field(self):
        with pytest.raises(TypeError):
            LogContext.bind(event_id="nope")

    def test_clear(self):
        LogContext.set(actor_id="a")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("silver_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.payment").name == "silver_kernel.services.payment"
