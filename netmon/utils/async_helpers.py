# netmon/utils/async_helpers.py
"""
Async utilities for safe task management.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Coroutine, Any, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_safe_task(
    coro: Coroutine[Any, Any, Any],
    name: Optional[str] = None,
    log_errors: bool = True
) -> asyncio.Task:
    """
    Create an asyncio task with automatic error handling.

    This prevents fire-and-forget tasks from silently swallowing exceptions.

    Args:
        coro: The coroutine to run as a task
        name: Optional name for the task (for logging)
        log_errors: Whether to log errors (default True)

    Returns:
        The created asyncio.Task
    """
    task = asyncio.create_task(coro, name=name)

    def _handle_exception(t: asyncio.Task):
        if t.cancelled():
            return
        exc = t.exception()
        if exc and log_errors:
            task_name = name or t.get_name()
            logger.error(f"[AsyncTask:{task_name}] Unhandled exception: {exc}", exc_info=exc)

    task.add_done_callback(_handle_exception)
    return task


async def settle(
    factory: Callable[[], Awaitable[T]],
    default: T,
    name: Optional[str] = None,
    on_error: Optional[Callable[[Exception], None]] = None
) -> T:
    """
    Call `factory`, await its result, or return `default` if either step raised.

    Cancellation is not swallowed. Failures are logged at WARNING with the
    given name so a fallback value is never silent, and handed to `on_error`
    when the caller needs to know which fetch fell back.

    Example:
        devices = await settle(gateway.get_all_devices, [], name="devices")
    """
    try:
        return await factory()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"[AsyncTask:{name or 'unknown'}] Failed, using default: {e}")
        if on_error is not None:
            on_error(e)
        return default


async def cancel_and_wait(task: Optional[asyncio.Task]) -> None:
    """Cancel a task and wait until it has actually finished."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.debug(f"[AsyncTask:{task.get_name()}] Raised while cancelling: {e}")
