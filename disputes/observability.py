"""
Logging setup for the dispute package.

Modules log through ``logging.getLogger(__name__)``; this module decides where
those records go and what they look like.

    ┌─────────────────────────────────────────────────────────┐
    │   Dispute / codec / storage  logger.error("...")        │
    └───────────────────────┬─────────────────────────────────┘
                            │  dispute_context(id, trade_id)
    ┌───────────────────────▼─────────────────────────────────┐
    │          "disputes" logger, level from config           │
    └───────────────────────┬─────────────────────────────────┘
                            │
    ┌───────────────────────▼─────────────────────────────────┐
    │     StructuredHandler (json)  │  StreamHandler (text)   │
    └─────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
import traceback
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

# Context variables tagging records emitted while a dispute is being mutated
dispute_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "dispute_id", default=""
)
trade_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "trade_id", default=""
)

ROOT_LOGGER_NAME = "disputes"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(dispute_id)s] %(message)s"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    dispute_id: str = ""
    trade_id: str = ""
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != ""}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@contextlib.contextmanager
def dispute_context(dispute_id: str, trade_id: str = "") -> Iterator[None]:
    """Tag log records emitted inside the block with the dispute."""
    id_token = dispute_id_var.set(dispute_id)
    trade_token = trade_id_var.set(trade_id)
    try:
        yield
    finally:
        trade_id_var.reset(trade_token)
        dispute_id_var.reset(id_token)


class DisputeContextFilter(logging.Filter):
    """Copies the dispute context variables onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.dispute_id = dispute_id_var.get() or "-"
        record.trade_id = trade_id_var.get()
        return True


class StructuredHandler(logging.Handler):
    """Logging handler that outputs one JSON object per line."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            dispute_id = getattr(record, "dispute_id", "")
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                dispute_id="" if dispute_id == "-" else dispute_id,
                trade_id=getattr(record, "trade_id", ""),
            )

            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            self.stream.write(event.to_json() + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(config: Any = None, stream: Any = None) -> logging.Logger:
    """Install the configured handler on the package logger.

    Replaces handlers installed by a previous call, so it is safe to call again
    after the configuration changes.
    """
    from disputes.config import LOG_LEVELS, ConfigValidationError, get_config

    if config is None:
        config = get_config()

    level_name = str(config.observability.log_level.get()).lower()
    log_format = config.observability.log_format.get()
    if level_name not in LOG_LEVELS:
        raise ConfigValidationError(
            f"Invalid log level {level_name!r}; expected one of {', '.join(LOG_LEVELS)}"
        )
    if log_format not in ("json", "text"):
        raise ConfigValidationError(f"Invalid log format {log_format!r}; expected json or text")

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_disputes_managed", False):
            root.removeHandler(handler)

    if log_format == "json":
        handler: logging.Handler = StructuredHandler(stream)
    else:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    handler.addFilter(DisputeContextFilter())
    handler._disputes_managed = True  # type: ignore[attr-defined]

    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name.upper()))
    return root
