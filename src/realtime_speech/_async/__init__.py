"""Utilities for async operations."""

import logging
from typing import Awaitable, Callable

from ._task_pool import _TaskPool

__all__ = ["_TaskPool", "stop_all", "stop_quietly"]

logger = logging.getLogger(__name__)


async def stop_all(*funcs: Callable[..., Awaitable[None]]) -> None:
    """Call all stops in sequence and aggregate errors.

    A failure in one stop call will not block subsequent stop calls.

    Args:
        funcs: Stop functions to call in sequence.

    Raises:
        RuntimeError: If any stop function raises an exception.
    """
    exceptions = []
    for func in funcs:
        try:
            await func()
        except Exception as exception:
            exceptions.append({"func_name": func.__name__, "exception": repr(exception)})

    if exceptions:
        raise RuntimeError(f"exceptions={exceptions} | failed stop sequence")


async def stop_quietly(*funcs: Callable[..., Awaitable[None]]) -> None:
    """Run a stop sequence, logging rather than raising any failure.

    Failures are logged at warning level instead of raised.
    """
    try:
        await stop_all(*funcs)
    except RuntimeError as error:
        logger.warning("error=<%s> | failed to release realtime resources", error)
