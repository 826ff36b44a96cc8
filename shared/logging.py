"""
Structured logging for the summarization gateway.

Every event is rendered as one JSON line carrying the service name, the
request correlation fields bound for the current request (``request_id``,
``client_id``) and, when a span is recording, the OpenTelemetry trace ids.
"""

import logging
import sys
import uuid
from typing import Any, Callable, Dict, Optional

import structlog
from opentelemetry import trace

Processor = Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]


def _service_stamp(service_name: str) -> Processor:
    """Processor that tags each event with the process's service name."""

    def stamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return stamp


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add trace context to log events."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _service_stamp(service_name),
            add_trace_context,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request id for the rest of the request, generating one if absent."""
    request_id = request_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def set_client_context(client_id: Optional[str] = None):
    """Bind the calling client (rate limit identity) for the rest of the request."""
    if client_id:
        structlog.contextvars.bind_contextvars(client_id=client_id)


def clear_context():
    """Drop every field bound for the finished request."""
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
