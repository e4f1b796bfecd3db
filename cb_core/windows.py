from __future__ import annotations

import contextlib
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Callable, Dict, Generic, Iterator, Optional, Sequence, TypeVar

from cb_core.paginator import Emit, Page, StreamResponse
from cb_core.pool import DEFAULT_WORKERS, run_jobs
from cb_core.runtime import Canceler, invoke


log = logging.getLogger("cb_core.windows")

T = TypeVar("T")

DEFAULT_INCREMENT = timedelta(hours=5)
DEFAULT_MAX_GRANULARITY_S = 30

FetchWindow = Callable[["TimeWindow"], Sequence[T]]

_SKIPPED = object()


@dataclass(frozen=True)
class TimeWindow:
    """Closed-open interval [start, end); a missing side is unbounded."""

    start: Optional[datetime]
    end: Optional[datetime]
    sequence: int

    @property
    def bounded(self) -> bool:
        return self.start is not None and self.end is not None


@dataclass
class WindowPage(Page[T]):
    window: Optional[TimeWindow] = None


@dataclass(frozen=True)
class WindowPlan:
    start: Optional[datetime]
    end: Optional[datetime]
    increment: timedelta = DEFAULT_INCREMENT
    max_windows: int = 0

    @classmethod
    def build(
        cls,
        start: Optional[datetime],
        end: Optional[datetime],
        *,
        granularity_s: int = 0,
        max_windows: int = 0,
        default_increment: timedelta = DEFAULT_INCREMENT,
        max_granularity_s: int = DEFAULT_MAX_GRANULARITY_S,
    ) -> "WindowPlan":
        increment = default_increment
        if 0 < granularity_s <= max_granularity_s:
            increment = timedelta(seconds=granularity_s)

        cap = max_windows
        if start is not None and end is not None and end > start:
            derived = math.ceil((end - start) / increment)
            if not (0 < max_windows < derived):
                cap = derived
        return cls(start=start, end=end, increment=increment, max_windows=cap)

    @property
    def paginates(self) -> bool:
        return self.start is not None and self.end is not None and self.end > self.start

    def windows(self) -> Iterator[TimeWindow]:
        if not self.paginates:
            # Without both bounds the upstream API answers with one
            # unbounded page, so exactly one window is issued.
            yield TimeWindow(start=self.start, end=self.end, sequence=0)
            return

        assert self.start is not None and self.end is not None
        sequence = 0
        start = self.start
        while start < self.end:
            if self.max_windows > 0 and sequence >= self.max_windows:
                return
            end = min(start + self.increment, self.end)
            yield TimeWindow(start=start, end=end, sequence=sequence)
            sequence += 1
            start = end


@dataclass(frozen=True)
class _WindowJob:
    window: TimeWindow
    fetch: Callable[[TimeWindow], Any]
    canceler: Canceler

    @property
    def job_id(self) -> int:
        return self.window.sequence

    async def run(self) -> Any:
        # Queued but not yet started when the stream was canceled.
        if self.canceler.fired:
            return _SKIPPED
        return await invoke(self.fetch, self.window)


def stream_windows(
    fetch_window: FetchWindow,
    plan: WindowPlan,
    *,
    throttle_s: float = 0.0,
    workers: int = DEFAULT_WORKERS,
    name: str = "windows",
) -> StreamResponse[WindowPage[T]]:
    """Fetch every window of the plan through a bounded worker pool.

    Pages are emitted in completion order; page_number is the window
    sequence, so consumers that need time order must sort on it.
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    if not plan.paginates:
        log.info("Unbounded time range, issuing a single window (stream=%s)", name)

    async def produce(emit: Emit, canceler: Canceler) -> None:
        issued: Dict[int, TimeWindow] = {}

        async def generate() -> AsyncIterator[_WindowJob]:
            for window in plan.windows():
                if window.sequence == 0:
                    if canceler.fired:
                        return
                elif await canceler.sleep(throttle_s):
                    log.debug("Window generation canceled at %d (stream=%s)", window.sequence, name)
                    return
                issued[window.sequence] = window
                yield _WindowJob(window=window, fetch=fetch_window, canceler=canceler)

        async with contextlib.aclosing(run_jobs(generate(), workers)) as results:
            async for res in results:
                window = issued.pop(res.job_id)
                if res.ok and res.value is _SKIPPED:
                    log.debug("Window %d skipped: canceled (stream=%s)", window.sequence, name)
                    continue
                page: WindowPage[T] = WindowPage(page_number=window.sequence, window=window)
                if res.ok:
                    page.items = list(res.value or [])
                else:
                    log.warning("Window %d failed (stream=%s): %s", window.sequence, name, res.error)
                    page.error = res.error
                await emit(page)

    return StreamResponse(produce, name=name)
