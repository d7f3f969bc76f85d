"""Bounded-time close for backend handles.

``safe_close`` races a primary close routine against a timer. When the timer
wins, or the primary fails, the fallback gets whatever is left of the same window
and control returns to the caller while any unfinished routine keeps running
in the background.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_TIMEOUT_S = 2.0

CloseRoutine = Callable[[], Awaitable[Any] | Any]

# Primary closes that outlived their timeout; held so they are not garbage collected
_pending_closes: set[asyncio.Future[Any]] = set()


async def _invoke(routine: CloseRoutine) -> Any:
    result = routine()
    if inspect.isawaitable(result):
        return await result
    return result


def _reap(task: asyncio.Future[Any]) -> None:
    _pending_closes.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Late close routine failed: %s", exc)


def _detach(task: asyncio.Future[Any]) -> None:
    _pending_closes.add(task)
    task.add_done_callback(_reap)


def pending_closes() -> frozenset[asyncio.Future[Any]]:
    """Close routines still running after their caller moved on."""
    return frozenset(_pending_closes)


async def _run_fallback(fallback: CloseRoutine, *, remaining_s: float, label: str) -> None:
    task = asyncio.ensure_future(_invoke(fallback))
    # A zero wait still lets the fallback take its first step
    done, _ = await asyncio.wait({task}, timeout=max(remaining_s, 0.0))
    if task not in done:
        logger.warning("Fallback close of %s still running after the close window", label)
        _detach(task)
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Fallback close of %s failed: %s", label, exc)


async def safe_close(
    close: CloseRoutine,
    fallback: CloseRoutine | None = None,
    *,
    timeout_s: float = DEFAULT_SHUTDOWN_TIMEOUT_S,
    label: str = "data source",
) -> bool:
    """Close a backend handle within ``timeout_s``.

    Args:
        close: Primary close routine (sync or async).
        fallback: Forceful close run when the primary fails or times out.
        timeout_s: Total time given to the primary and fallback routines together.
        label: Name used in log messages.

    Returns:
        True if the primary routine completed successfully in time.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    primary = asyncio.ensure_future(_invoke(close))
    done, _ = await asyncio.wait({primary}, timeout=timeout_s)

    if primary in done:
        exc = primary.exception()
        if exc is None:
            return True
        logger.warning("Closing %s failed: %s", label, exc)
    else:
        logger.warning("Closing %s did not finish within %.1fs", label, timeout_s)
        _detach(primary)

    if fallback is not None:
        await _run_fallback(fallback, remaining_s=deadline - loop.time(), label=label)
    return False
