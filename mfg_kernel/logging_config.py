"""
JSON-lines logging for the costing and weighing kernel.

Every record is one JSON object carrying ``ts``, ``level``, ``logger`` and
``message``, the fields bound in ``LogContext`` (which container, formula
or actor the work is for), and anything passed through ``extra``.
Decimals are written as strings so weights and costs keep their exact
scale in the log stream.
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
import threading
from collections.abc import Mapping
from contextvars import ContextVar, Token
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_NAMESPACE = "mfg_kernel"

_CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "container_id",
    "formula_id",
    "trace_id",
)

_bound: ContextVar[Mapping[str, str]] = ContextVar("mfg_log_context", default={})


class LogContext:
    """
    Request-scoped log fields, isolated per thread and per asyncio task.

    Only the names in ``_CONTEXT_FIELDS`` are recognised; anything else is
    ignored. None never overwrites a bound value.
    """

    @staticmethod
    def _merged(values: Mapping[str, Any]) -> dict[str, str]:
        fields = dict(_bound.get())
        for name, value in values.items():
            if name in _CONTEXT_FIELDS and value is not None:
                fields[name] = str(value)
        return fields

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        actor_id: str | None = None,
        container_id: str | None = None,
        formula_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        _bound.set(cls._merged({
            "correlation_id": correlation_id,
            "actor_id": actor_id,
            "container_id": container_id,
            "formula_id": formula_id,
            "trace_id": trace_id,
        }))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_bound.get())

    @classmethod
    def clear(cls) -> None:
        _bound.set({})

    @classmethod
    def bind(cls, **fields: Any) -> "_Binding":
        """Bind fields for the duration of a ``with`` block."""
        return _Binding(fields)


class _Binding:
    def __init__(self, fields: Mapping[str, Any]):
        self._fields = fields
        self._token: Token | None = None

    def __enter__(self) -> type[LogContext]:
        self._token = _bound.set(LogContext._merged(self._fields))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        if self._token is not None:
            _bound.reset(self._token)
            self._token = None


# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Kernel errors keep their context (container, weights, ids) as attributes.
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_bound.get())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the ``mfg_kernel`` namespace."""
    return logging.getLogger(f"{_NAMESPACE}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``mfg_kernel`` namespace logger.

    Only the first call has any effect. Records do not propagate to the
    root logger, so the host application's handlers never see them twice.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    out = handler if handler is not None else logging.StreamHandler(stream)
    out.setFormatter(StructuredFormatter())

    namespace = logging.getLogger(_NAMESPACE)
    namespace.setLevel(level)
    namespace.propagate = False
    namespace.addHandler(out)


def reset_logging() -> None:
    """Undo ``configure_logging`` (test support)."""
    global _configured
    with _configure_lock:
        _configured = False
    namespace = logging.getLogger(_NAMESPACE)
    namespace.handlers.clear()
    namespace.setLevel(logging.WARNING)
