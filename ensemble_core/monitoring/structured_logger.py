"""
Structured logging with correlation IDs for the agent ensemble.

Agent-layer components log key/value events (persona, conversation, operation,
provider) through structlog. The LLM layer logs through plain stdlib loggers.
After ``configure_logging`` both go through one ``ProcessorFormatter`` so every
line, whichever layer wrote it, carries the correlation ID bound by the
orchestration that caused it.
"""

import contextvars
import logging
import threading
import uuid
from typing import Any, Optional, Union

import structlog

correlation_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)

_configure_lock = threading.Lock()
_structlog_configured = False


def add_correlation_id(logger, method_name, event_dict):
    correlation_id = correlation_id_context.get()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def _shared_processors():
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]


def _configure_structlog(final_processor=None):
    """
    Without ``final_processor`` events are rendered to text before reaching
    stdlib, which is what an unconfigured process (or a test run) wants.
    """
    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + _shared_processors()
        + [final_processor or structlog.dev.ConsoleRenderer(colors=False)],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def _ensure_configured():
    global _structlog_configured
    if _structlog_configured:
        return
    with _configure_lock:
        if not _structlog_configured:
            _configure_structlog()
            _structlog_configured = True


class StructuredLogger:
    """
    Key/value logger bound to one component.

    ``with_context`` returns a child that carries extra fields (typically the
    persona and conversation) on every event.
    """

    def __init__(self, name: str, component: Optional[str] = None, _bound=None):
        _ensure_configured()
        self.name = name
        self.component = component or name
        self.logger = _bound or structlog.get_logger(name).bind(component=self.component)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, error: Optional[BaseException] = None, **kwargs):
        """Log an error, flattening ``error`` into type and message fields."""
        if error is not None:
            kwargs.update({"error_type": type(error).__name__, "error_message": str(error)})
        self.logger.error(message, **kwargs)

    def with_context(self, **context) -> "StructuredLogger":
        return StructuredLogger(self.name, self.component, _bound=self.logger.bind(**context))


class LoggingContext:
    """
    Bind a correlation ID for the duration of a block.

    The ID lives in a context variable, so tasks started inside the block
    (for example per-persona calls under ``asyncio.gather``) inherit it.
    Nested contexts restore the outer ID on exit.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or uuid.uuid4().hex
        self._token: Optional[contextvars.Token] = None

    def __enter__(self):
        self._token = correlation_id_context.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        correlation_id_context.reset(self._token)


def get_correlation_id() -> Optional[str]:
    return correlation_id_context.get()


def get_logger(name: str, component: Optional[str] = None) -> StructuredLogger:
    """
    Get a structured logger.

    Args:
        name: Logger name, normally ``__name__``
        component: Value of the ``component`` field; defaults to ``name``
    """
    return StructuredLogger(name, component)


def configure_logging(log_level: Union[str, Any] = "INFO", json_format: bool = False):
    """
    Install one console handler on the root logger and route structlog through it.

    Args:
        log_level: Level name or a ``LogLevel`` config value
        json_format: Render every line as a JSON object
    """
    global _structlog_configured
    level_name = getattr(log_level, "value", log_level)
    level = getattr(logging, str(level_name).upper())

    renderer = (
        structlog.processors.JSONRenderer(default=str)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=_shared_processors(),
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    with _configure_lock:
        _configure_structlog(structlog.stdlib.ProcessorFormatter.wrap_for_formatter)
        _structlog_configured = True
