"""Timing logs for the slow, administrative store operations."""
import asyncio
import functools
import logging
import time
from typing import Any, Callable, Optional, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
Summarizer = Callable[[Any], str]


def _log_finished(name: str, started: float, result: Any, summarize: Optional[Summarizer]) -> None:
    elapsed = time.monotonic() - started
    detail = f": {summarize(result)}" if summarize is not None else ""
    logger.info(f"{name} finished in {elapsed:.2f}s{detail}")


def _log_failed(name: str, started: float, error: Exception) -> None:
    elapsed = time.monotonic() - started
    logger.error(f"{name} failed after {elapsed:.2f}s: {error!r}")


def timed_operation(summarize: Optional[Summarizer] = None) -> Callable[[F], F]:
    """
    Log how long an operation took together with what it did.

    ``summarize`` turns the return value into a short description, e.g. how
    many files a batch deleted or how many bytes a backup wrote. Works on
    both plain and ``async`` functions. Failures are logged with the elapsed
    time and re-raised unchanged.

    Example::

        @timed_operation(lambda stats: f"{stats.total_files} files")
        async def stats(self) -> StorageStats: ...
    """

    def decorator(func: F) -> F:
        name = func.__qualname__

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.monotonic()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _log_failed(name, started, e)
                    raise
                _log_finished(name, started, result, summarize)
                return result

            return cast(F, async_wrapper)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_failed(name, started, e)
                raise
            _log_finished(name, started, result, summarize)
            return result

        return cast(F, wrapper)

    return decorator
