"""OpenTelemetry-based observability for agentcore."""

from agentcore.observability.tracing import get_tracer, mark_error, span, start_span

__all__ = ["get_tracer", "mark_error", "span", "start_span"]
