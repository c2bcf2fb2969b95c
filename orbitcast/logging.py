"""Structured logging helpers for orbitcast.

Records are emitted as one JSON object per line on the ``orbitcast`` logger.
Per-query metadata (object id, query time) is bound with :func:`log_context`
and attached to every record emitted inside the block.
"""

from __future__ import annotations

import contextlib
import contextvars
import datetime as _dt
import json
import logging
import math
import os
import sys
from typing import Any, Dict, Mapping, Optional, TextIO, Union

_LOGGER_NAME = "orbitcast"
_CONTEXT: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "orbitcast_log_context", default={}
)
# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

LevelLike = Union[str, int, None]


def resolve_level(level: LevelLike = None) -> int:
    """Turn a level name or number into a logging level.

    ``None`` falls back to ``ORBITCAST_LOG_LEVEL`` and then ``INFO``. Unknown
    names raise ``ValueError``.
    """

    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv("ORBITCAST_LOG_LEVEL") or "INFO"
    name = str(level).strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        raise ValueError(f"unknown log level {level!r}")
    return numeric


class JSONFormatter(logging.Formatter):
    """Render records as JSON with bound context and ``extra`` fields.

    When ``vector_precision`` is set, float components of lists and tuples
    (state vectors) are rounded to that many decimals.
    """

    def __init__(self, vector_precision: Optional[int] = None) -> None:
        super().__init__()
        self.vector_precision = vector_precision

    def format(self, record: logging.LogRecord) -> str:
        created = _dt.datetime.fromtimestamp(record.created, _dt.timezone.utc)
        payload: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = _CONTEXT.get()
        if context:
            payload["context"] = self._encode(context)

        extras = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extras:
            payload["extra"] = self._encode(extras)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=repr, allow_nan=False)

    def _encode(self, value: Any, in_vector: bool = False) -> Any:
        if isinstance(value, Mapping):
            return {str(k): self._encode(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._encode(item, in_vector=True) for item in value]
        if isinstance(value, float):
            # Strict JSON has no literal for NaN or infinity.
            if not math.isfinite(value):
                return str(value)
            if in_vector and self.vector_precision is not None:
                return round(value, self.vector_precision)
            return value
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value


class _PackageHandler(logging.StreamHandler):
    """Marks the handler installed by :func:`configure_logging`."""


def configure_logging(
    level: LevelLike = None,
    stream: Optional[TextIO] = None,
    force: bool = False,
    vector_precision: Optional[int] = None,
) -> logging.Logger:
    """Attach a JSON handler to the ``orbitcast`` logger.

    A second call is a no-op unless ``force`` is set, in which case the
    previously installed handler is replaced. Handlers added by other code
    are left alone.
    """

    logger = logging.getLogger(_LOGGER_NAME)
    installed = [h for h in logger.handlers if isinstance(h, _PackageHandler)]
    if installed and not force:
        return logger
    for handler in installed:
        logger.removeHandler(handler)

    handler = _PackageHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter(vector_precision))
    logger.addHandler(handler)
    logger.setLevel(resolve_level(level))
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return ``orbitcast`` or one of its children."""

    if not name or name == _LOGGER_NAME:
        return logging.getLogger(_LOGGER_NAME)
    if name.startswith(_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")


@contextlib.contextmanager
def log_context(**fields: Any):
    """Bind ``fields`` to every record emitted inside the block.

    Nested blocks extend the outer context; ``None`` values are dropped.
    """

    token = _CONTEXT.set({**_CONTEXT.get(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _CONTEXT.reset(token)


__all__ = ["JSONFormatter", "configure_logging", "get_logger", "log_context", "resolve_level"]
