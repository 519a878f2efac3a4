"""
ragroute - Timed Parallel Calls
================================
Every external call made at query time (embedding lookup, web search,
routing classification, answer generation) goes through these helpers so
that it carries an explicit timeout.

Worker threads cannot be killed in Python: a call that overruns its
timeout keeps running in the background, but nobody waits for it.  The
executor is therefore shut down with ``wait=False`` instead of being used
as a context manager (whose ``__exit__`` would block on the straggler).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


class CallTimeoutError(TimeoutError):
    """A timed call did not finish within its budget."""

    def __init__(self, label: str, timeout: float) -> None:
        super().__init__(f"'{label}' timed out after {timeout:.1f}s")
        self.label = label
        self.timeout = timeout


@dataclass
class FanOutResult(Generic[T]):
    """Outcome of ``fan_out``: successful results and per-key failures."""

    results: dict[str, T] = field(default_factory=dict)
    failures: dict[str, BaseException] = field(default_factory=dict)

    @property
    def all_failed(self) -> bool:
        return bool(self.failures) and not self.results


def call_with_timeout(fn: Callable[[], T], timeout: float | None, label: str = "call") -> T:
    """
    Run *fn* on a worker thread and wait at most *timeout* seconds.

    Raises ``CallTimeoutError`` on overrun; any exception raised by *fn*
    propagates unchanged.  ``timeout=None`` waits indefinitely.
    """
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"ragroute-{label}")
    try:
        future = pool.submit(fn)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise CallTimeoutError(label, timeout or 0.0) from None
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def fan_out(calls: Mapping[str, Callable[[], T]], timeout: float | None) -> FanOutResult[T]:
    """
    Start every call concurrently and wait until all finish or *timeout* expires.

    One thread per call: every call must be running before the shared
    deadline starts to count.

    Calls still running at the deadline are recorded as ``CallTimeoutError``
    failures.  The result dicts preserve the key order of *calls*.
    """
    outcome: FanOutResult[T] = FanOutResult()
    if not calls:
        return outcome

    pool = ThreadPoolExecutor(max_workers=len(calls), thread_name_prefix="ragroute-fanout")
    try:
        futures: dict[str, Future[T]] = {key: pool.submit(fn) for key, fn in calls.items()}
        wait(list(futures.values()), timeout=timeout)

        for key, future in futures.items():
            if not future.done():
                future.cancel()
                outcome.failures[key] = CallTimeoutError(key, timeout or 0.0)
                continue
            exc = future.exception()
            if exc is not None:
                outcome.failures[key] = exc
            else:
                outcome.results[key] = future.result()
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    return outcome
