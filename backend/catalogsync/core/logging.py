"""Logging setup with contextual dimensions.

Every sync run gets its own ``ContextualLogger`` carrying dimensions such as the platform
and the sync type, so log lines from concurrent runs can be told apart.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from catalogsync.core.config import settings

_RESERVED_ATTRS = set(logging.makeLogRecord({}).__dict__.keys()) | {"message", "asctime"}


class _DimensionFormatter(logging.Formatter):
    """Formatter that renders the contextual dimensions of a record.

    Local development gets a readable ``[key=value]`` suffix; everything else gets one
    JSON object per line.
    """

    def __init__(self, as_json: bool):
        super().__init__(fmt="%(asctime)s %(levelname)s %(name)s - %(message)s")
        self.as_json = as_json

    def format(self, record: logging.LogRecord) -> str:
        dimensions = {
            key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS
        }
        if self.as_json:
            payload = {
                "timestamp": self.formatTime(record),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                **dimensions,
            }
            if record.exc_info:
                payload["exc_info"] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str, ensure_ascii=False)

        line = super().format(record)
        if dimensions:
            rendered = " ".join(f"{key}={value}" for key, value in sorted(dimensions.items()))
            line = f"{line} [{rendered}]"
        return line


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that attaches a fixed set of dimensions to every record."""

    def __init__(self, logger: logging.Logger, dimensions: Optional[Dict[str, Any]] = None):
        """Wrap ``logger`` with ``dimensions``."""
        self.dimensions: Dict[str, str] = {k: str(v) for k, v in (dimensions or {}).items()}
        super().__init__(logger, self.dimensions)

    def process(self, msg, kwargs):
        """Merge the adapter dimensions with any per-call ``extra``."""
        kwargs["extra"] = {**self.dimensions, **kwargs.get("extra", {})}
        return msg, kwargs

    def with_context(self, **kwargs: Any) -> "ContextualLogger":
        """Return a child logger with additional dimensions."""
        return ContextualLogger(self.logger, {**self.dimensions, **kwargs})


class LoggerConfigurator:
    """Builds configured loggers."""

    _handler: Optional[logging.Handler] = None

    @classmethod
    def _get_handler(cls) -> logging.Handler:
        if cls._handler is None:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(_DimensionFormatter(as_json=not settings.LOCAL_DEVELOPMENT))
            cls._handler = handler
        return cls._handler

    @classmethod
    def configure_logger(
        cls, name: str, dimensions: Optional[Dict[str, Any]] = None
    ) -> ContextualLogger:
        """Configure a named logger and wrap it with dimensions.

        Args:
            name: Logger name (e.g. ``catalogsync.platform.sync``)
            dimensions: Key/value pairs added to every record

        Returns:
            ContextualLogger
        """
        base_logger = logging.getLogger(name)
        base_logger.setLevel(settings.LOG_LEVEL.upper())
        handler = cls._get_handler()
        if handler not in base_logger.handlers:
            base_logger.addHandler(handler)
        base_logger.propagate = False
        return ContextualLogger(base_logger, dimensions)


logger = LoggerConfigurator.configure_logger("catalogsync")
