from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Hashable, List, Optional, Protocol

from cb_core.runtime import invoke


log = logging.getLogger("cb_core.pool")

DEFAULT_WORKERS = 4


class Job(Protocol):
    @property
    def job_id(self) -> Hashable: ...

    def run(self) -> Any: ...


@dataclass(frozen=True)
class JobResult:
    job_id: Hashable
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


_STOP = object()
_WORKER_EXIT = object()


async def run_jobs(jobs: AsyncIterable[Job], workers: int = DEFAULT_WORKERS) -> AsyncIterator[JobResult]:
    """Execute jobs with at most `workers` in flight, yielding results as they complete.

    Results come back in completion order, not submission order. Every task
    the pool starts has exited by the time the generator finishes, whether
    it ran to exhaustion or was closed early.
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")

    pending: asyncio.Queue = asyncio.Queue(maxsize=1)
    results: asyncio.Queue = asyncio.Queue()
    source_errors: List[BaseException] = []

    async def feed() -> None:
        try:
            async for job in jobs:
                await pending.put(job)
        except Exception as exc:
            log.warning("Job source failed: %s", exc)
            source_errors.append(exc)
        for _ in range(workers):
            await pending.put(_STOP)

    async def work(worker_id: int) -> None:
        while True:
            job = await pending.get()
            if job is _STOP:
                break
            try:
                value = await invoke(job.run)
            except Exception as exc:
                log.debug("Job %r failed on worker %d: %s", job.job_id, worker_id, exc)
                await results.put(JobResult(job_id=job.job_id, error=exc))
            else:
                await results.put(JobResult(job_id=job.job_id, value=value))
        await results.put(_WORKER_EXIT)

    feeder = asyncio.create_task(feed(), name="pool-feeder")
    worker_tasks = [asyncio.create_task(work(i), name=f"pool-worker-{i}") for i in range(workers)]
    try:
        remaining = workers
        while remaining:
            res = await results.get()
            if res is _WORKER_EXIT:
                remaining -= 1
                continue
            yield res
        await feeder
        if source_errors:
            raise source_errors[0]
    finally:
        tasks = [feeder, *worker_tasks]
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        aclose = getattr(jobs, "aclose", None)
        if aclose is not None:
            await aclose()
