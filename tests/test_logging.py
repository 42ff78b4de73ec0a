"""Tests for Lingo structured logging and correlation IDs."""
import logging


def test_configure_logging():
    """configure_logging() should install the correlation filter on root handlers."""
    from lingo_engine.logging_config import CorrelationIdFilter, configure_logging
    configure_logging(logging.INFO)
    handlers = logging.getLogger().handlers
    assert handlers
    assert any(isinstance(f, CorrelationIdFilter) for f in handlers[0].filters)


def test_correlation_id_var():
    """correlation_id_var should store and retrieve values."""
    from lingo_engine.logging_config import correlation_id_var
    token = correlation_id_var.set("test-123")
    assert correlation_id_var.get() == "test-123"
    correlation_id_var.reset(token)


def test_new_correlation_id_length():
    """new_correlation_id() should return an 8-character string."""
    from lingo_engine.logging_config import new_correlation_id
    cid = new_correlation_id()
    assert isinstance(cid, str)
    assert len(cid) == 8


def test_filter_stamps_records():
    from lingo_engine.logging_config import CorrelationIdFilter, correlation_id_var
    record = logging.LogRecord("lingo", logging.INFO, __file__, 1, "msg", None, None)
    token = correlation_id_var.set("abc12345")
    try:
        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "abc12345"
    finally:
        correlation_id_var.reset(token)


def test_structlog_processor_adds_correlation_id():
    from lingo_engine.logging_config import add_correlation_id, correlation_id_var
    token = correlation_id_var.set("cid-1")
    try:
        event = add_correlation_id(None, "info", {"event": "model_lifecycle"})
    finally:
        correlation_id_var.reset(token)
    assert event["correlation_id"] == "cid-1"
