"""Daemon worker threads for calls that may never return.

Provider calls run on daemon threads so that a call stuck past its
deadline is abandoned: the caller stops waiting, and the stuck thread
does not hold up interpreter shutdown the way a ``ThreadPoolExecutor``
worker would.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Callable, Hashable, Optional, Sequence, TypeVar

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def call_in_daemon(operation: Callable[[], T], *, timeout: Optional[float], name: str) -> T:
    """Run ``operation`` on a daemon thread and wait at most ``timeout`` seconds.

    Raises the builtin ``TimeoutError`` when the wait runs out; exceptions
    raised by ``operation`` are re-raised in the caller.
    """
    done = threading.Event()
    outcome: dict = {}

    def target() -> None:
        try:
            outcome["value"] = operation()
        except Exception as exc:
            outcome["error"] = exc
        finally:
            done.set()

    threading.Thread(target=target, name=name, daemon=True).start()
    if not done.wait(timeout):
        raise TimeoutError(f"{name} did not finish within {timeout:.1f}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


def run_all(
    operation: Callable[[K], T],
    items: Sequence[K],
    *,
    max_workers: int,
    timeout: Optional[float],
    name: str,
) -> dict[K, T]:
    """Apply ``operation`` to every item on at most ``max_workers`` daemon threads.

    Results come back keyed by item once all of them succeeded. The first
    failure is re-raised and workers stop taking new items; running out of
    ``timeout`` raises the builtin ``TimeoutError``.
    """
    pending: queue.Queue = queue.Queue()
    for item in items:
        pending.put(item)
    finished: queue.Queue = queue.Queue()
    stop = threading.Event()

    def worker() -> None:
        while not stop.is_set():
            try:
                item = pending.get_nowait()
            except queue.Empty:
                return
            try:
                finished.put((item, True, operation(item)))
            except Exception as exc:
                finished.put((item, False, exc))

    for index in range(min(max_workers, len(items))):
        threading.Thread(target=worker, name=f"{name}-{index}", daemon=True).start()

    expires_at = None if timeout is None else time.monotonic() + timeout
    results: dict[K, T] = {}
    try:
        while len(results) < len(items):
            remaining = None if expires_at is None else max(0.0, expires_at - time.monotonic())
            try:
                item, ok, value = finished.get(timeout=remaining)
            except queue.Empty:
                raise TimeoutError(f"{name} did not finish within {timeout:.1f}s") from None
            if not ok:
                raise value
            results[item] = value
    finally:
        # Items not yet started are dropped; running calls are abandoned.
        stop.set()
    return results
