"""Structured logging configuration for Lingo."""
import logging
import contextvars
import uuid

import structlog

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


def new_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())[:8]


def add_correlation_id(logger, method_name, event_dict):
    """Structlog processor to add correlation ID."""
    cid = correlation_id_var.get("")
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


class CorrelationIdFilter(logging.Filter):
    """Stamp stdlib log records with the request correlation ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get("") or "-"
        return True


def configure_logging(level: int = logging.INFO):
    """Configure stdlib logging plus structlog.

    Engine modules log through ``logging.getLogger("lingo.*")``; structlog is
    configured alongside for JSON output from anything that uses it directly.
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] [%(correlation_id)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(CorrelationIdFilter())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_correlation_id,
            structlog.dev.ConsoleRenderer() if level <= logging.DEBUG else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )
