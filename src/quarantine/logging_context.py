"""Context-scoped structured logging.

Components receive a ContextLogger instead of reaching for a process-wide
logger, so every line carries the run it belongs to.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional

# Attributes present on every LogRecord; anything else came from `extra`.
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class ContextLogger(logging.LoggerAdapter):
    """LoggerAdapter that merges bound context into every record."""

    def __init__(self, logger: logging.Logger, context: Optional[dict[str, Any]] = None):
        super().__init__(logger, dict(context or {}))

    @property
    def context(self) -> dict[str, Any]:
        return dict(self.extra)

    def bind(self, **context: Any) -> "ContextLogger":
        """Return a new logger with additional context; self is unchanged."""
        merged = {**self.extra, **{k: v for k, v in context.items() if v is not None}}
        return ContextLogger(self.logger, merged)

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, **context: Any) -> ContextLogger:
    """Create a ContextLogger for a module with initial context."""
    return ContextLogger(logging.getLogger(name), context)


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON line (CloudWatch friendly)."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO") -> None:
    """Install the JSON formatter on the root logger.

    Lambda pre-installs a handler on the root logger; reuse it rather than
    stacking a second one.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if not root.handlers:
        root.addHandler(logging.StreamHandler())

    for handler in root.handlers:
        if not isinstance(handler.formatter, JsonFormatter):
            handler.setFormatter(JsonFormatter())
