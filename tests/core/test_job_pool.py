import asyncio
from dataclasses import dataclass
from typing import Any, Callable

import pytest

from cb_core.pool import run_jobs


@dataclass
class _Job:
    job_id: int
    fn: Callable[[], Any]

    async def run(self):
        return await self.fn()


async def _jobs(items):
    for job in items:
        yield job


def test_concurrency_never_exceeds_worker_count():
    state = {"active": 0, "max": 0}

    def make(i):
        async def body():
            state["active"] += 1
            state["max"] = max(state["max"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return i * 10

        return _Job(i, body)

    async def main():
        return [r async for r in run_jobs(_jobs([make(i) for i in range(10)]), workers=4)]

    results = asyncio.run(main())

    assert state["max"] == 4
    assert sorted(r.job_id for r in results) == list(range(10))
    assert all(r.ok and r.value == r.job_id * 10 for r in results)


def test_results_arrive_in_completion_order():
    def make(i, delay):
        async def body():
            await asyncio.sleep(delay)
            return i

        return _Job(i, body)

    async def main():
        jobs = [make(0, 0.1), make(1, 0.0), make(2, 0.02)]
        return [r.job_id async for r in run_jobs(_jobs(jobs), workers=3)]

    assert asyncio.run(main()) == [1, 2, 0]


def test_job_errors_are_reported_per_job():
    async def ok():
        return "fine"

    async def bad():
        raise ValueError("nope")

    async def main():
        jobs = [_Job(0, ok), _Job(1, bad), _Job(2, ok)]
        return {r.job_id: r async for r in run_jobs(_jobs(jobs), workers=2)}

    results = asyncio.run(main())

    assert results[0].ok and results[2].ok
    assert not results[1].ok
    assert isinstance(results[1].error, ValueError)


def test_workers_must_be_positive():
    async def main():
        with pytest.raises(ValueError):
            async for _ in run_jobs(_jobs([]), workers=0):
                pass

    asyncio.run(main())


def test_source_error_is_raised_after_dispatched_jobs():
    async def ok():
        return 1

    async def source():
        yield _Job(0, ok)
        yield _Job(1, ok)
        raise RuntimeError("source broke")

    async def main():
        got = []
        with pytest.raises(RuntimeError, match="source broke"):
            async for r in run_jobs(source(), workers=2):
                got.append(r.job_id)
        return got

    assert sorted(asyncio.run(main())) == [0, 1]


def test_early_close_tears_down_every_task():
    closed = {"source": False}

    async def slow():
        await asyncio.sleep(10)

    async def fast():
        return "done"

    async def source():
        try:
            yield _Job(0, fast)
            for i in range(1, 100):
                yield _Job(i, slow)
        finally:
            closed["source"] = True

    async def main():
        results = run_jobs(source(), workers=3)
        first = await results.__anext__()
        await results.aclose()
        await asyncio.sleep(0)
        leftover = [t for t in asyncio.all_tasks() if t.get_name().startswith("pool-")]
        return first, leftover

    first, leftover = asyncio.run(asyncio.wait_for(main(), timeout=5.0))

    assert first.job_id == 0 and first.value == "done"
    assert leftover == []
    assert closed["source"]
