"""Bounded concurrency for units of work and their sub-queries.

Two shapes are supported:
- ``run_units``: independent units (one ranking type, one user, one item)
  run on a bounded pool with failure isolation and a per-unit deadline
  that is enforced on wall-clock time, not only at stage boundaries.
- ``fan_out``: independent sub-queries inside one unit, joined before the
  unit continues; the first failure cancels pending siblings and is raised.
"""

import contextvars
import sqlite3
import threading
import time
from collections import deque
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from bookrank.errors import (
    EngineError,
    ErrorClass,
    ErrorRecord,
    UnitFailedError,
    UnitTimeoutError,
)
from bookrank.store.errors import StateStoreError


logger = structlog.get_logger()

K = TypeVar("K")
R = TypeVar("R")


class Deadline:
    """Cooperative time budget for one unit of work.

    Checked at stage boundaries; a unit that passes its deadline raises
    UnitTimeoutError before writing anything.
    """

    def __init__(
        self,
        unit: str,
        timeout_seconds: float | None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Start the deadline.

        Args:
            unit: Key of the unit of work.
            timeout_seconds: Budget in seconds, or None for no limit.
            clock: Monotonic clock, injectable for tests.
        """
        self.unit = unit
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._started = clock()

    def remaining(self) -> float | None:
        """Seconds left, or None when unbounded."""
        if self.timeout_seconds is None:
            return None
        return max(0.0, self.timeout_seconds - (self._clock() - self._started))

    @property
    def expired(self) -> bool:
        """Whether the budget is spent."""
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, stage: str) -> None:
        """Raise if the budget is spent.

        Args:
            stage: Stage about to start, for error context.

        Raises:
            UnitTimeoutError: If the deadline has passed.
        """
        if self.expired:
            raise UnitTimeoutError(self.unit, self.timeout_seconds or 0.0, stage)


def fan_out(
    tasks: Mapping[str, Callable[[], R]],
    max_workers: int,
    deadline: Deadline | None = None,
) -> dict[str, R]:
    """Run independent sub-queries concurrently and join them.

    Args:
        tasks: Named zero-argument callables.
        max_workers: Pool size; 1 runs the tasks sequentially.
        deadline: Budget of the enclosing unit.

    Returns:
        Results keyed by task name.

    Raises:
        UnitTimeoutError: If the deadline passes before all tasks finish.
        Exception: The first failure in task order; pending tasks are cancelled.
    """
    if not tasks:
        return {}

    if max_workers <= 1 or len(tasks) == 1:
        results: dict[str, R] = {}
        for name, task in tasks.items():
            if deadline is not None:
                deadline.check(f"fan_out:{name}")
            results[name] = task()
        return results

    executor = ThreadPoolExecutor(
        max_workers=min(max_workers, len(tasks)), thread_name_prefix="fanout"
    )
    try:
        futures: dict[str, Future[R]] = {
            name: executor.submit(contextvars.copy_context().run, task)
            for name, task in tasks.items()
        }
        timeout = deadline.remaining() if deadline is not None else None
        done, pending = wait(futures.values(), timeout=timeout, return_when=FIRST_EXCEPTION)

        failed = [
            name
            for name, future in futures.items()
            if future in done and future.exception() is not None
        ]
        if failed:
            for future in pending:
                future.cancel()
            error = futures[failed[0]].exception()
            if error is None:
                msg = "failed future lost its exception"
                raise RuntimeError(msg)
            raise error

        if pending:
            for future in pending:
                future.cancel()
            unit = deadline.unit if deadline is not None else "fan_out"
            budget = deadline.timeout_seconds if deadline is not None else 0.0
            raise UnitTimeoutError(unit, budget or 0.0, "fan_out")

        return {name: future.result() for name, future in futures.items()}
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


@dataclass
class UnitOutcome(Generic[R]):
    """Result of one unit of work.

    Attributes:
        unit: Key of the unit (ranking type, user id, item id).
        value: Result when the unit succeeded.
        error: Error record when the unit failed.
        duration_ms: Wall time spent in the unit.
    """

    unit: str
    value: R | None = None
    error: ErrorRecord | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """Check if the unit succeeded."""
        return self.error is None

    @property
    def timed_out(self) -> bool:
        """Check if the unit ran past its deadline."""
        return self.error is not None and self.error.error_class == ErrorClass.TIMEOUT


def _as_engine_error(error: Exception, key: str) -> EngineError:
    """Wrap exceptions from outside the engine taxonomy."""
    if isinstance(error, EngineError):
        return error
    if isinstance(error, StateStoreError | sqlite3.Error):
        return UnitFailedError(key, error, ErrorClass.STORE)
    return UnitFailedError(key, error)


def _run_one(
    unit: K,
    key: str,
    work: Callable[[K, Deadline], R],
    deadline: Deadline,
) -> UnitOutcome[R]:
    start = time.perf_counter()
    try:
        value = work(unit, deadline)
    except Exception as e:  # noqa: BLE001
        duration_ms = (time.perf_counter() - start) * 1000
        record = ErrorRecord.from_exception(_as_engine_error(e, key), unit=key)
        logger.error(
            "unit_failed",
            unit=key,
            error_class=record.error_class.value,
            error=record.message,
            duration_ms=round(duration_ms, 2),
        )
        return UnitOutcome(unit=key, error=record, duration_ms=duration_ms)

    duration_ms = (time.perf_counter() - start) * 1000
    return UnitOutcome(unit=key, value=value, duration_ms=duration_ms)


def _start_unit(
    unit: K,
    key: str,
    work: Callable[[K, Deadline], R],
    deadline: Deadline,
) -> Future[UnitOutcome[R]]:
    """Run one unit on its own daemon thread.

    A unit abandoned past its deadline keeps its thread until the blocking
    call returns; the daemon flag keeps it from holding up interpreter exit.
    """
    future: Future[UnitOutcome[R]] = Future()
    context = contextvars.copy_context()

    def target() -> None:
        future.set_result(context.run(_run_one, unit, key, work, deadline))

    threading.Thread(target=target, name=f"unit-{key}", daemon=True).start()
    return future


def _abandoned(deadline: Deadline, started: float) -> UnitOutcome[R]:
    duration_ms = (time.perf_counter() - started) * 1000
    error = UnitTimeoutError(deadline.unit, deadline.timeout_seconds or 0.0, "running")
    logger.error(
        "unit_timed_out",
        unit=deadline.unit,
        timeout_seconds=deadline.timeout_seconds,
        duration_ms=round(duration_ms, 2),
    )
    return UnitOutcome(
        unit=deadline.unit,
        error=ErrorRecord.from_exception(error),
        duration_ms=duration_ms,
    )


def _run_bounded(
    units: Sequence[K],
    keys: list[str],
    work: Callable[[K, Deadline], R],
    max_workers: int,
    timeout_seconds: float,
) -> list[UnitOutcome[R]]:
    """Run units with at most max_workers live at once, each wall-clock bounded.

    A unit still running when its deadline passes is reported as timed out
    and its slot is released. The late thread hits its own deadline check
    before persisting, so it never writes.
    """
    outcomes: dict[int, UnitOutcome[R]] = {}
    queued = deque(range(len(units)))
    running: dict[Future[UnitOutcome[R]], tuple[int, Deadline, float]] = {}

    while queued or running:
        while queued and len(running) < max(1, max_workers):
            index = queued.popleft()
            deadline = Deadline(keys[index], timeout_seconds)
            future = _start_unit(units[index], keys[index], work, deadline)
            running[future] = (index, deadline, time.perf_counter())

        next_expiry = min(deadline.remaining() or 0.0 for _, deadline, _ in running.values())
        done, _ = wait(list(running), timeout=next_expiry, return_when=FIRST_COMPLETED)

        for future in done:
            index, _, _ = running.pop(future)
            outcomes[index] = future.result()

        for future, (index, deadline, started) in list(running.items()):
            if deadline.expired:
                del running[future]
                outcomes[index] = _abandoned(deadline, started)

    return [outcomes[index] for index in range(len(units))]


def run_units(
    units: Sequence[K],
    work: Callable[[K, Deadline], R],
    max_workers: int,
    timeout_seconds: float | None,
    unit_key: Callable[[K], str] = str,
) -> list[UnitOutcome[R]]:
    """Run independent units on a bounded pool with failure isolation.

    A failing or timed-out unit yields an outcome carrying an ErrorRecord;
    it never aborts the other units. With a timeout, each unit runs on its
    own thread and is reported as timed out once its budget is spent, even
    while a signal read inside it is still blocked.

    Args:
        units: Units to run.
        work: Callable receiving the unit and its deadline.
        max_workers: Maximum parallel units.
        timeout_seconds: Budget per unit, or None for no limit.
        unit_key: Maps a unit to its string key for logs and errors.

    Returns:
        Outcomes in input order.
    """
    keys = [unit_key(u) for u in units]

    if timeout_seconds is not None:
        return _run_bounded(units, keys, work, max_workers, timeout_seconds)

    if max_workers <= 1:
        return [
            _run_one(unit, key, work, Deadline(key, None))
            for unit, key in zip(units, keys, strict=True)
        ]

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="unit") as executor:
        futures = [
            executor.submit(
                contextvars.copy_context().run, _run_one, unit, key, work, Deadline(key, None)
            )
            for unit, key in zip(units, keys, strict=True)
        ]
        return [future.result() for future in futures]
