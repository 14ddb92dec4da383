"""Tracing helpers: the traced() decorator and current-span attributes.

Cached values and params never reach a span; traced() copies only the
allowlisted keyword arguments below.
"""

import asyncio
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

AttributeValue = str | int | float | bool | list[str]

_SPAN_KWARGS = frozenset({"namespace", "cache_key", "count", "livemode", "type"})

_tracer = trace.get_tracer(__name__)


@contextmanager
def _span(name: str, attributes: dict[str, AttributeValue] | None, kwargs: dict[str, Any]) -> Iterator[None]:
    with _tracer.start_as_current_span(name, record_exception=False, set_status_on_exception=False) as span:
        for key, value in (attributes or {}).items():
            span.set_attribute(key, value)
        for key, value in kwargs.items():
            if key in _SPAN_KWARGS:
                span.set_attribute(f"arg.{key}", str(value))
        try:
            yield
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
        span.set_status(Status(StatusCode.OK))


def traced(
    operation_name: str | None = None,
    attributes: dict[str, AttributeValue] | None = None,
) -> Callable:
    """Run the decorated function (sync or async) inside a span.

    Args:
        operation_name: Span name; defaults to module.qualname.
        attributes: Static attributes set on every span.
    """

    def decorator(func: Callable) -> Callable:
        name = operation_name or f"{func.__module__}.{func.__qualname__}"

        if asyncio.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with _span(name, attributes, kwargs):
                    return await func(*args, **kwargs)

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(name, attributes, kwargs):
                return func(*args, **kwargs)

        return sync_wrapper

    return decorator


def add_span_attributes(**attributes: AttributeValue) -> None:
    """Set attributes on the current span; no-op when nothing is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attributes(attributes)


def add_span_event(name: str, attributes: dict[str, AttributeValue] | None = None) -> None:
    """Add an event to the current span."""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes=attributes or {})
