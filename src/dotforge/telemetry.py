"""OpenTelemetry tracing for dotforge.

Provides a thread-safe cached tracer factory and ``create_span()``. Only
``opentelemetry-api`` is required; without an SDK configured every span
is a no-op.

Spans emitted by dotforge:
    - ``dotforge.stack.synthesize``: one per stack, attribute ``dotforge.stack``.
    - ``dotforge.plugin.execute``: one per plugin run, attributes
      ``dotforge.stack`` and ``dotforge.plugin``.
"""

from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer

TRACER_NAME = "dotforge"

STACK_SPAN = "dotforge.stack.synthesize"
PLUGIN_SPAN = "dotforge.plugin.execute"
STACK_ATTRIBUTE = "dotforge.stack"
PLUGIN_ATTRIBUTE = "dotforge.plugin"

_tracers: dict[str, Tracer] = {}
_tracer_init_failed: bool = False
_lock = threading.Lock()


def get_tracer(name: str = TRACER_NAME) -> Tracer:
    """Get or create a cached tracer.

    Falls back to a NoOpTracer when OpenTelemetry initialization fails, and
    keeps returning NoOp tracers until ``reset_tracer()`` is called.
    """
    global _tracer_init_failed

    if name in _tracers:
        return _tracers[name]

    if _tracer_init_failed:
        return trace.NoOpTracer()

    with _lock:
        if name in _tracers:
            return _tracers[name]

        if _tracer_init_failed:
            return trace.NoOpTracer()

        try:
            tracer = trace.get_tracer(name)
            _tracers[name] = tracer
            return tracer
        except Exception:
            _tracer_init_failed = True
            return trace.NoOpTracer()


def set_tracer(tracer: Tracer | None, name: str = TRACER_NAME) -> None:
    """Install a tracer for ``name`` (tests), or clear it with None."""
    with _lock:
        if tracer is None:
            _tracers.pop(name, None)
        else:
            _tracers[name] = tracer


def reset_tracer() -> None:
    """Clear cached tracers and the initialization failure flag."""
    global _tracer_init_failed
    with _lock:
        _tracers.clear()
        _tracer_init_failed = False


@contextmanager
def create_span(name: str, attributes: dict[str, Any] | None = None) -> Generator[Span, None, None]:
    """Create a span as a context manager.

    An exception escaping the block marks the span ERROR and records
    ``exception.type`` and ``exception.message`` before re-raising.

    Example:
        >>> with create_span(STACK_SPAN, {STACK_ATTRIBUTE: "main"}) as span:
        ...     span.set_attribute("dotforge.file_count", 3)
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.set_attribute("exception.type", type(e).__name__)
            span.set_attribute("exception.message", str(e))
            raise


__all__ = [
    "PLUGIN_ATTRIBUTE",
    "PLUGIN_SPAN",
    "STACK_ATTRIBUTE",
    "STACK_SPAN",
    "create_span",
    "get_tracer",
    "reset_tracer",
    "set_tracer",
]
