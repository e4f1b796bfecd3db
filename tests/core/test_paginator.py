import asyncio
import threading
import time

import pytest

from cb_core.paginator import NO_THROTTLE, PageRequest, max_page_checker, resolve_throttle, stream_pages


def _counting_fetch(stop_after=None, fail_at=None, empty_at=None):
    calls = []

    async def fetch(cursor):
        n = int(cursor)
        calls.append(n)
        if fail_at is not None and n == fail_at:
            raise RuntimeError(f"boom at {n}")
        if empty_at is not None and n == empty_at:
            return [], str(n + 1)
        nxt = None if stop_after is not None and n >= stop_after else str(n + 1)
        return [f"item-{n}"], nxt

    return fetch, calls


async def _collect(stream, timeout=5.0):
    return await asyncio.wait_for(stream.collect(), timeout=timeout)


def test_max_page_yields_max_plus_one_pages():
    async def main():
        fetch, calls = _counting_fetch()
        stream = stream_pages(fetch, "0", max_page=2)
        return await _collect(stream), calls

    pages, calls = asyncio.run(main())

    assert [p.page_number for p in pages] == [0, 1, 2]
    assert calls == [0, 1, 2]
    assert all(p.ok for p in pages)


def test_non_positive_max_page_is_unbounded():
    async def main():
        fetch, _ = _counting_fetch(stop_after=7)
        return await _collect(stream_pages(fetch, "0", max_page=0))

    pages = asyncio.run(main())
    assert len(pages) == 8


def test_error_at_page_k_ends_stream_after_k_plus_one_pages():
    async def main():
        fetch, calls = _counting_fetch(fail_at=3)
        return await _collect(stream_pages(fetch, "0")), calls

    pages, calls = asyncio.run(main())

    assert len(pages) == 4
    assert all(p.ok for p in pages[:3])
    assert isinstance(pages[-1].error, RuntimeError)
    assert pages[-1].items == []
    assert calls == [0, 1, 2, 3]


def test_empty_next_cursor_stops():
    async def main():
        fetch, _ = _counting_fetch(stop_after=2)
        return await _collect(stream_pages(fetch, "0", max_page=10))

    pages = asyncio.run(main())
    assert [p.items for p in pages] == [["item-0"], ["item-1"], ["item-2"]]


def test_empty_page_is_emitted_and_stops():
    async def main():
        fetch, calls = _counting_fetch(empty_at=1)
        return await _collect(stream_pages(fetch, "0")), calls

    pages, calls = asyncio.run(main())
    assert len(pages) == 2
    assert pages[1].items == [] and pages[1].ok
    assert calls == [0, 1]


def test_blocking_fetch_runs_off_loop():
    seen = []

    def fetch(cursor):
        seen.append(threading.current_thread() is threading.main_thread())
        return ["x"], None

    async def main():
        return await _collect(stream_pages(fetch, "start"))

    pages = asyncio.run(main())
    assert len(pages) == 1
    assert seen == [False]


def test_cancel_stops_an_unbounded_stream():
    async def main():
        fetch, calls = _counting_fetch()
        stream = stream_pages(fetch, "0", throttle_s=0.05)
        pages = []
        async for page in stream:
            pages.append(page)
            stream.cancel()
        return pages, calls

    pages, calls = asyncio.run(asyncio.wait_for(main(), timeout=5.0))

    assert 1 <= len(pages) <= 2
    assert len(calls) <= 2


def test_cancel_during_long_throttle_closes_promptly():
    async def main():
        fetch, calls = _counting_fetch()
        stream = stream_pages(fetch, "0", throttle_s=10.0)
        first = await stream.__anext__()
        started = time.monotonic()
        stream.cancel()
        rest = await asyncio.wait_for(stream.collect(), timeout=5.0)
        return first, rest, time.monotonic() - started, calls

    first, rest, elapsed, calls = asyncio.run(main())

    assert first.page_number == 0
    assert rest == []
    assert calls == [0]
    assert elapsed < 1.0


def test_cancel_is_idempotent_and_thread_safe():
    async def main():
        fetch, _ = _counting_fetch()
        stream = stream_pages(fetch, "0", throttle_s=0.05)
        first = await stream.__anext__()
        threads = [threading.Thread(target=stream.cancel) for _ in range(8)]
        for t in threads:
            t.start()
        stream.cancel()
        for t in threads:
            t.join()
        stream.cancel()
        rest = await asyncio.wait_for(stream.collect(), timeout=5.0)
        return first, rest, stream

    first, rest, stream = asyncio.run(main())

    assert first.page_number == 0
    assert stream.canceled
    assert stream.closed
    assert len(rest) <= 2


def test_aclose_stops_driver_mid_stream():
    async def main():
        fetch, _ = _counting_fetch()
        async with stream_pages(fetch, "0") as stream:
            await stream.__anext__()
        return stream

    stream = asyncio.run(main())
    assert stream.closed
    assert stream._task.done()


def test_resolve_throttle():
    assert resolve_throttle(NO_THROTTLE, 350) == 0.0
    assert resolve_throttle(0, 350) == pytest.approx(0.35)
    assert resolve_throttle(120, 350) == pytest.approx(0.12)
    assert resolve_throttle(-5, 0) == 0.0


def test_max_page_checker():
    check = max_page_checker(2)
    assert not check(2)
    assert check(3)
    assert not max_page_checker(0)(10_000)


def test_page_request_query_params():
    req = PageRequest(per_page=25, starting_after=" abc ", order="desc")
    assert req.query_params() == {"limit": "25", "starting_after": "abc", "order": "desc"}
    assert PageRequest().query_params() == {}
