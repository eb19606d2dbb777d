"""
budget_kernel.logging_config -- JSON-lines logging for the budget packages.

Every record is rendered as one JSON object: ``ts``, ``level``, ``logger``
and ``message``, then the claim/budget identifiers bound in LogContext,
then the record's ``extra`` payload, then ``exc_*`` fields when an
exception is attached.  BudgetKernelError subclasses contribute their
``code`` and structured attributes (``exc_code``, ``exc_category_id``...).

All loggers live under the ``budget_kernel`` namespace; the engines,
config and services obtain theirs through ``get_logger``.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

_LOGGER_PREFIX = "budget_kernel"

_CONTEXT: dict[str, ContextVar[str | None]] = {
    "claim_id": ContextVar("budget_log_claim_id", default=None),
    "budget_id": ContextVar("budget_log_budget_id", default=None),
}


class LogContext:
    """Claim and budget identifiers stamped onto every record in scope."""

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _CONTEXT.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """
        Set context fields for the body of a ``with`` block.

        None leaves a field as it was. Previous values are restored on exit,
        so nested binds for different budgets do not leak into each other.

        Raises:
            TypeError: if a field is not one of ``claim_id`` / ``budget_id``.
        """
        unknown = fields.keys() - _CONTEXT.keys()
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        tokens = [
            (_CONTEXT[name], _CONTEXT[name].set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_"):
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        # Decimal, Money and anything else non-JSON is logged as its str()
        return json.dumps(payload, default=str)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the budget_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``budget_kernel`` logger.

    Only the first call takes effect. Without ``handler`` records go to
    stderr, leaving stdout free for command output.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False

    target = handler if handler is not None else logging.StreamHandler(sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
