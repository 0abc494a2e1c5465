"""OpenTelemetry tracing decorators."""

import functools
import inspect
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

F = TypeVar("F", bound=Callable[..., Any])


def traced(
    span_name: str | None = None,
    service_name: str = "order-svc",
    attributes: tuple[str, ...] = (),
) -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Creates a span around each call and records failures on it. Named
    arguments listed in ``attributes`` are copied onto the span when they
    hold a str, int or float, which makes spans searchable by order id.

    Args:
        span_name: Name for the span (defaults to function name if not provided)
        service_name: Service name for span attributes
        attributes: Argument names to record as span attributes

    Returns:
        Decorated function with tracing

    Example:
        @traced("append_order_item", attributes=("order_id",))
        async def append_order_item(self, order_id: int, ...) -> None:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)
        signature = inspect.signature(func)

        def argument_attributes(args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
            if not attributes:
                return {}
            bound = signature.bind_partial(*args, **kwargs)
            return {
                f"arg.{key}": value
                for key, value in bound.arguments.items()
                if key in attributes and isinstance(value, (str, int, float))
            }

        @contextmanager
        def span_for(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Iterator[Span]:
            with tracer.start_as_current_span(name) as span:
                span.set_attribute("service.name", service_name)
                if span_name:
                    span.set_attribute("function.name", func.__name__)
                for key, value in argument_attributes(args, kwargs).items():
                    span.set_attribute(key, value)
                try:
                    yield span
                except Exception as e:
                    span.set_attribute("success", False)
                    span.set_attribute("error.type", type(e).__name__)
                    span.record_exception(e)
                    raise
                span.set_attribute("success", True)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with span_for(args, kwargs):
                return await func(*args, **kwargs)

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with span_for(args, kwargs):
                return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
