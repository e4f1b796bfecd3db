from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from cb_core.runtime import Canceler, invoke


log = logging.getLogger("cb_core.paginator")

T = TypeVar("T")
P = TypeVar("P")

# Pass as throttle_ms to disable waiting between calls entirely.
NO_THROTTLE = -1

FetchPage = Callable[[str], Tuple[Sequence[T], Optional[str]]]
Emit = Callable[[Any], Awaitable[None]]


def resolve_throttle(throttle_ms: int, default_ms: int = 0) -> float:
    """Return the inter-call wait in seconds.

    NO_THROTTLE disables waiting, a positive value is used as-is and
    zero (or any other negative) selects the resource default.
    """
    if throttle_ms == NO_THROTTLE:
        return 0.0
    if throttle_ms > 0:
        return throttle_ms / 1000.0
    return max(0, default_ms) / 1000.0


def max_page_checker(max_page: int) -> Callable[[int], bool]:
    def page_exceeds(page_number: int) -> bool:
        if max_page <= 0:
            return False
        return page_number > max_page

    return page_exceeds


@dataclass(frozen=True)
class PageRequest:
    per_page: int = 0
    starting_after: str = ""
    ending_before: str = ""
    order: str = ""
    max_page: int = 0
    throttle_ms: int = 0

    def query_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.per_page > 0:
            params["limit"] = str(self.per_page)
        if self.starting_after.strip():
            params["starting_after"] = self.starting_after.strip()
        if self.ending_before.strip():
            params["ending_before"] = self.ending_before.strip()
        if self.order:
            params["order"] = self.order
        return params


@dataclass
class Page(Generic[T]):
    page_number: int
    items: List[T] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _DriverFailure:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc


_DONE = object()


class StreamResponse(Generic[P]):
    """Single-pass async stream of pages plus its cancellation trigger.

    Pages are produced by one driver task and handed over through a
    one-slot queue, so the driver never runs more than one page ahead of
    the consumer.
    """

    def __init__(self, producer: Callable[[Emit, Canceler], Awaitable[None]], name: str = "stream") -> None:
        self.name = name
        self._canceler = Canceler()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._closed = False
        self._task = asyncio.get_running_loop().create_task(self._drive(producer), name=name)

    async def _emit(self, page: Any) -> None:
        await self._queue.put(page)

    async def _drive(self, producer: Callable[[Emit, Canceler], Awaitable[None]]) -> None:
        try:
            await producer(self._emit, self._canceler)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.exception("Stream driver failed (stream=%s)", self.name)
            await self._queue.put(_DriverFailure(exc))
            return
        await self._queue.put(_DONE)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def canceled(self) -> bool:
        return self._canceler.fired

    def cancel(self) -> None:
        """Stop the driver from starting further calls. Safe to call repeatedly."""
        if self._canceler.fire():
            log.debug("Stream canceled (stream=%s)", self.name)

    def __aiter__(self) -> "StreamResponse[P]":
        return self

    async def __anext__(self) -> P:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _DONE:
            self._closed = True
            raise StopAsyncIteration
        if isinstance(item, _DriverFailure):
            self._closed = True
            raise item.exc
        return item

    async def collect(self) -> List[P]:
        return [page async for page in self]

    async def aclose(self) -> None:
        self.cancel()
        self._closed = True
        if not self._task.done():
            self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)

    async def __aenter__(self) -> "StreamResponse[P]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def stream_pages(
    fetch_page: FetchPage,
    first_cursor: str,
    *,
    max_page: int = 0,
    throttle_s: float = 0.0,
    name: str = "pages",
) -> StreamResponse[Page[T]]:
    """Drive cursor pagination and return the page stream.

    fetch_page(cursor) returns (items, next_cursor) and raises on failure;
    it may be a plain blocking callable or a coroutine function. Must be
    called from inside a running event loop.
    """
    page_exceeds = max_page_checker(max_page)

    async def produce(emit: Emit, canceler: Canceler) -> None:
        cursor = first_cursor
        page_number = 0
        while True:
            if canceler.fired:
                log.debug("Stopping before page %d: canceled (stream=%s)", page_number, name)
                return

            page: Page[T] = Page(page_number=page_number)
            try:
                items, next_cursor = await invoke(fetch_page, cursor)
            except Exception as exc:
                log.warning("Page %d failed (stream=%s): %s", page_number, name, exc)
                page.error = exc
                await emit(page)
                return

            page.items = list(items or [])
            log.debug("Fetched page %d with %d items (stream=%s)", page_number, len(page.items), name)
            await emit(page)

            page_number += 1
            if page_exceeds(page_number) or not page.items:
                return
            if not next_cursor:
                return
            if await canceler.sleep(throttle_s):
                log.debug("Stopping after page %d: canceled (stream=%s)", page_number - 1, name)
                return
            cursor = next_cursor

    return StreamResponse(produce, name=name)
