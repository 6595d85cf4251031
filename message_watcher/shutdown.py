"""Stops a worker thread: cooperative join, grace period, then forced cancel."""
import ctypes
import math
import threading
from enum import Enum
from typing import Callable, Optional

from message_watcher.errors import WorkerCancelled
from message_watcher.logging_conf import logger


class StopOutcome(Enum):
    JOINED = "joined"
    JOINED_AFTER_GRACE = "joined_after_grace"
    CANCELLED = "cancelled"
    ABANDONED = "abandoned"


def raise_in_thread(thread: threading.Thread, exc_type=WorkerCancelled) -> None:
    """Asynchronously raise exc_type inside thread.

    Takes effect the next time the thread executes Python bytecode, so a
    thread blocked in a system call is only interrupted once that call returns.
    """
    if thread.ident is None:
        raise RuntimeError(f"Thread {thread.name} was never started")
    affected = ctypes.pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(thread.ident), ctypes.py_object(exc_type))
    if affected == 0:
        raise RuntimeError(f"Thread {thread.name} is not running")
    if affected > 1:
        # Undo; we hit more than the one thread we meant to
        ctypes.pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(thread.ident), None)
        raise RuntimeError(f"Cancelling {thread.name} affected {affected} threads")


def stop_thread(
    thread,
    join_timeout: float = 10,
    grace_seconds: float = 20,
    poll_increment: float = 2,
    cancel: Optional[Callable[[object], None]] = raise_in_thread,
) -> StopOutcome:
    """Wait for thread to finish, escalating to cancel if it will not.

    thread only needs ``join(timeout)`` and ``is_alive()``. Cancel failures
    are logged and reported as ABANDONED.
    """
    try:
        thread.join(join_timeout)
    except RuntimeError:
        logger.warning("Unable to join worker thread", exc_info=True)
    if not thread.is_alive():
        return StopOutcome.JOINED

    logger.warning(f"Worker still running after {join_timeout}s, waiting up to {grace_seconds}s more")
    for _ in range(math.ceil(grace_seconds / poll_increment)):
        thread.join(poll_increment)
        if not thread.is_alive():
            return StopOutcome.JOINED_AFTER_GRACE

    if cancel is None:
        logger.error("Worker did not stop and cancellation is disabled")
        return StopOutcome.ABANDONED

    logger.warning("Worker did not stop, cancelling")
    try:
        cancel(thread)
        thread.join(poll_increment)
    except Exception:
        logger.error("Unable to cancel worker thread", exc_info=True)
        return StopOutcome.ABANDONED
    if thread.is_alive():
        logger.error("Worker thread is still alive after cancel")
        return StopOutcome.ABANDONED
    return StopOutcome.CANCELLED
