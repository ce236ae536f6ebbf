"""OpenTelemetry spans for the agent loop.

Only the OpenTelemetry API is used here; spans are recorded when the host
application installs an SDK tracer provider and are no-ops otherwise.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

TRACER_NAME = "agentcore"


def get_tracer(name: str = TRACER_NAME) -> trace.Tracer:
    """Return the tracer used by agentcore."""
    return trace.get_tracer(name)


@contextmanager
def span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Context manager that opens a span and records escaping exceptions."""
    tracer = get_tracer()
    clean = {k: v for k, v in (attributes or {}).items() if v is not None}
    with tracer.start_as_current_span(
        name, attributes=clean, record_exception=True, set_status_on_exception=True,
    ) as s:
        yield s


def start_span(name: str, attributes: dict[str, Any] | None = None) -> Span:
    """Start a span without making it current.

    For work that spans ``yield`` points of an async generator, where the
    current context cannot be safely attached and detached.
    """
    clean = {k: v for k, v in (attributes or {}).items() if v is not None}
    return get_tracer().start_span(name, attributes=clean)


def mark_error(s: Span, description: str) -> None:
    """Flag a span as failed without an exception (in-band tool errors)."""
    s.set_status(Status(StatusCode.ERROR, description))
