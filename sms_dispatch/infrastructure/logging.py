"""
structlog setup for the dispatch service.

Every log line carries the service name and, when one is set, the
correlation id of the HTTP request or campaign event being handled.
Subscriber numbers and gateway tokens must go through ``mask_number`` /
``sanitize_for_logging`` before being logged.
"""

import logging
import sys
import time
from contextvars import ContextVar
from uuid import uuid4

import structlog

_correlation_id: ContextVar[str] = ContextVar("sms_correlation_id", default="")


def configure_logging(service_name: str, level: str = "INFO", json_output: bool = True) -> None:
    """
    Route structlog through stdlib logging on stdout.

    Args:
        service_name: Stamped on every event as ``service``
        level: Root level name, e.g. "DEBUG"
        json_output: JSON lines when True, coloured console output otherwise
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _stamp_context(service_name),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _stamp_context(service_name: str):
    def processor(logger, method_name, event_dict):
        event_dict["service"] = service_name
        cid = _correlation_id.get()
        if cid:
            event_dict.setdefault("correlation_id", cid)
        return event_dict

    return processor


def get_correlation_id() -> str:
    """Current correlation id; one is minted if the context has none."""
    cid = _correlation_id.get()
    if not cid:
        cid = uuid4().hex
        _correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    _correlation_id.set(cid)


class Timer:
    """Wall-clock timer for gateway probes and carrier calls."""

    def __init__(self) -> None:
        self._started = 0.0
        self._stopped: float | None = None

    def __enter__(self) -> "Timer":
        self._started = time.monotonic()
        self._stopped = None
        return self

    def __exit__(self, *exc) -> None:
        self._stopped = time.monotonic()

    @property
    def duration_ms(self) -> float:
        """Elapsed milliseconds; still ticking while inside the block."""
        end = self._stopped if self._stopped is not None else time.monotonic()
        return round((end - self._started) * 1000, 2)


def sanitize_for_logging(value: str | None, visible_chars: int = 8) -> str:
    """Show only a prefix of a token or secret."""
    if not value:
        return ""
    return value if len(value) <= visible_chars else f"{value[:visible_chars]}..."


def mask_number(number: str | None, visible_digits: int = 4) -> str:
    """Keep only the trailing digits of a subscriber number."""
    if not number:
        return ""
    if len(number) <= visible_digits:
        return "*" * len(number)
    return "*" * (len(number) - visible_digits) + number[-visible_digits:]
