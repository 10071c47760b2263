"""
mfg_engines.tracer -- ``@traced_engine`` and the MFG_ENGINE_TRACE record.

Each successful engine call logs one record naming the engine, its
version, how long the call took, and a fingerprint of the inputs listed
in ``fingerprint_fields``. Two calls with equal inputs produce the same
fingerprint, so a cost or a weight in a report can be matched to the
exact call that produced it. A call that raises logs nothing here; the
engine logs its own failure.

Fingerprinted arguments are matched by parameter name whether they were
passed by position or by keyword.

Usage:
    @traced_engine("pricing", "1.0", fingerprint_fields=("markup_multiple",))
    def analyze(self, unit_cost, *, markup_multiple=None):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

# Under the kernel namespace so the structured handler formats it.
_logger = logging.getLogger("mfg_kernel.engines.tracer")

TRACE_TYPE = "MFG_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        body = ",".join(
            f"{f.name}:{_canonicalize(getattr(value, f.name))}"
            for f in dataclasses.fields(value)
        )
        return f"{type(value).__name__}({body})"
    # Decimal, int and float: str() is exact and stable.
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """
    First 16 hex characters of the SHA-256 of the named inputs.

    A field absent from ``kwargs`` hashes the same as one set to None.
    """
    canonical = "|".join(
        f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Log MFG_ENGINE_TRACE after every successful call of the wrapped engine."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        def named_inputs(args: tuple, kwargs: dict) -> dict[str, Any]:
            try:
                bound = signature.bind(*args, **kwargs)
            except TypeError:
                # Let the real call raise its own TypeError.
                return kwargs
            return bound.arguments

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                fingerprint = compute_input_fingerprint(
                    fingerprint_fields, named_inputs(args, kwargs)
                )

            started = time.monotonic()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.monotonic() - started) * 1000, 2)

            _logger.info(TRACE_TYPE, extra={
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint,
                "duration_ms": elapsed_ms,
                "function": func.__qualname__,
            })
            return result

        return wrapper

    return decorator
