"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

# Type variable for generic function signatures
F = TypeVar("F", bound=Callable[..., Any])

# Keyword arguments copied onto the span when present
SPAN_ARGUMENTS = ("order_id", "requisition_id", "direction", "status")


def _annotate(span: Span, func_name: str, custom_name: bool, kwargs: dict[str, Any]) -> None:
    if custom_name:
        span.set_attribute("function.name", func_name)
    for key in SPAN_ARGUMENTS:
        value = kwargs.get(key)
        if value is not None:
            span.set_attribute(f"rms.{key}", getattr(value, "value", str(value)))


def _record_failure(span: Span, error: Exception) -> None:
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.record_exception(error)


def traced(span_name: str | None = None, service_name: str = "inventory-svc") -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Creates a span named after the function (or ``span_name``). Order ids,
    requisition ids, reconciliation direction and target status passed as
    keyword arguments are recorded as ``rms.*`` span attributes.

    Example:
        @traced("place_order")
        async def place_order(self, order: Order) -> Order:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                _annotate(span, func.__name__, span_name is not None, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                _annotate(span, func.__name__, span_name is not None, kwargs)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _record_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
