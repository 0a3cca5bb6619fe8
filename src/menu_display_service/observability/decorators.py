"""OpenTelemetry tracing decorators."""

import functools
import inspect
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

F = TypeVar("F", bound=Callable[..., Any])


def _mark_failure(span: Span, error: Exception) -> None:
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", str(error))
    span.record_exception(error)


def traced(
    span_name: str | None = None,
    service_name: str = "menu-display-svc",
    attributes: dict[str, Any] | None = None,
) -> Callable[[F], F]:
    """Decorator that runs a function inside its own span.

    Exceptions are recorded on the span and re-raised unchanged.

    Args:
        span_name: Name for the span (defaults to the function name)
        service_name: Instrumentation scope and ``service.name`` attribute
        attributes: Extra static attributes, e.g. the table a gateway call hits

    Returns:
        Decorated function with tracing

    Example:
        @traced("gateway.fetch_menu_by_slug", attributes={"db.table": "restaurants"})
        async def fetch_menu_by_slug(self, slug: str) -> RestaurantMenu:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)

        def start_span(span: Span) -> None:
            span.set_attribute("service.name", service_name)
            if span_name:
                span.set_attribute("function.name", func.__name__)
            for key, value in (attributes or {}).items():
                span.set_attribute(key, value)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                start_span(span)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _mark_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name) as span:
                start_span(span)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _mark_failure(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
