"""
Shared logging configuration for the ticket rule engine.
"""

import sys
import structlog
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional
from contextvars import ContextVar

# Context variables for correlating log lines with one rule pass
ticket_id_var: ContextVar[Optional[str]] = ContextVar('ticket_id', default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar('tenant_id', default=None)
trigger_event_var: ContextVar[Optional[str]] = ContextVar('trigger_event', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_processing_context,
            add_timestamp,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    get_logger(f"{service_name}.logging").debug("Logging configured", log_level=log_level)


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    # Extract service name from logger name
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        service_name = logger_name.split(".")[0]
        event_dict["service"] = service_name

    return event_dict


def add_processing_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add rule pass correlation context to log events."""
    for key, value in get_processing_context().items():
        if value:
            event_dict.setdefault(key, value)

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def get_processing_context() -> Dict[str, Optional[str]]:
    """Get the current rule pass context."""
    return {
        "ticket_id": ticket_id_var.get(),
        "tenant_id": tenant_id_var.get(),
        "trigger_event": trigger_event_var.get(),
    }


@contextmanager
def processing_context(ticket_id: Optional[str] = None,
                       tenant_id: Optional[str] = None,
                       trigger_event: Optional[str] = None) -> Iterator[None]:
    """Bind rule pass context for the duration of a block.

    The previous values are restored on exit, so a pass started from inside
    another pass leaves the outer context intact.
    """
    tokens = [
        ticket_id_var.set(ticket_id),
        tenant_id_var.set(tenant_id),
        trigger_event_var.set(trigger_event),
    ]
    try:
        yield
    finally:
        for var, token in zip((ticket_id_var, tenant_id_var, trigger_event_var), tokens):
            var.reset(token)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
