"""
Fail-open boundary for public repository and service verbs.

Internal code raises typed exceptions. Public verbs are wrapped with
fail_open() so that a fault is logged once, with the layer and method it
happened in, and the caller receives the verb's default value instead.

Usage:
    class GenericRepository:
        @fail_open(Layers.REPOSITORY, default_factory=list)
        async def get_all(self, filters): ...

Only Exception subclasses are caught. asyncio.CancelledError,
KeyboardInterrupt and SystemExit propagate.
"""

import functools
import inspect
from typing import Any, Callable, TypeVar

from shared.config.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_MISSING = object()


def _resolve_default(default: Any, default_factory: Callable[[], Any] | None) -> Any:
    if default_factory is not None:
        return default_factory()
    return None if default is _MISSING else default


def log_boundary_failure(layer: str, method: str, exc: BaseException, **context: Any) -> None:
    """Log a fault caught at a public boundary, with traceback."""
    logger.error(
        f"{layer}.{method} failed",
        layer=layer,
        method=method,
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=True,
        **context,
    )


def fail_open(
    layer: str,
    default: Any = _MISSING,
    *,
    default_factory: Callable[[], Any] | None = None,
) -> Callable[[F], F]:
    """
    Decorator that turns exceptions into a default return value.

    Works for coroutine functions and plain functions. Use default_factory
    for mutable defaults (list, dict).

    Args:
        layer: Layer name attached to the log record (see Layers).
        default: Value returned on failure (None when omitted).
        default_factory: Callable producing the value returned on failure.
    """

    def decorator(func: F) -> F:
        method = func.__name__

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    log_boundary_failure(layer, method, e)
                    return _resolve_default(default, default_factory)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                log_boundary_failure(layer, method, e)
                return _resolve_default(default, default_factory)

        return wrapper  # type: ignore[return-value]

    return decorator
