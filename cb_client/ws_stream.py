from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from websockets.asyncio.client import connect as ws_connect  # type: ignore
from websockets.exceptions import ConnectionClosed  # type: ignore

from cb_client import settings
from cb_client.errors import DecodeError
from cb_client.normalizer import decode_message
from cb_client.transport import HDR_API_KEY, HDR_PASSPHRASE, HDR_SIGNATURE, HDR_TIMESTAMP
from cb_client.types import Message


log = logging.getLogger("cb_client.ws_stream")

DEFAULT_PRODUCTS = ("BTC-USD", "ETH-USD", "LTC-USD")


@dataclass(frozen=True)
class Subscription:
    authenticate: bool = False
    products: List[str] = field(default_factory=lambda: list(DEFAULT_PRODUCTS))


class FeedSubscription:
    """Live full-channel feed for a set of products.

    Iterate messages() to consume; it ends when the server closes the
    connection or close() is called.
    """

    def __init__(self, url: str, subscribe_msg: Dict[str, Any]) -> None:
        self.url = url
        self.subscribe_msg = subscribe_msg
        self._stack: Optional[contextlib.AsyncExitStack] = None
        self._ws = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> "FeedSubscription":
        stack = contextlib.AsyncExitStack()
        try:
            self._ws = await stack.enter_async_context(ws_connect(self.url, max_queue=256))
            await self._ws.send(json.dumps(self.subscribe_msg))
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        log.info("Subscribed to %s products=%s", self.url, ",".join(self.subscribe_msg.get("product_ids", [])))
        return self

    async def messages(self) -> AsyncIterator[Message]:
        if self._ws is None:
            raise RuntimeError("subscription is not open")
        while not self._closed:
            try:
                frame = await self._ws.recv()
            except ConnectionClosed as exc:
                log.info("Feed closed (code=%s)", getattr(exc, "code", None))
                return
            if frame is None:
                return
            yield _parse_frame(frame)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        stack, self._stack = self._stack, None
        if stack is not None:
            await stack.aclose()
        log.debug("Feed subscription closed")

    async def __aenter__(self) -> "FeedSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def _parse_frame(frame: Any) -> Message:
    try:
        payload = json.loads(frame)
        if not isinstance(payload, dict):
            raise DecodeError("expecting a JSON object frame")
        return decode_message(payload)
    except (TypeError, ValueError) as exc:
        log.warning("Undecodable feed frame: %s", exc)
        return Message(error=exc)


class FeedAPI:
    async def subscribe(self, subscription: Optional[Subscription] = None) -> FeedSubscription:
        if subscription is None:
            subscription = Subscription()
        products = [p.strip() for p in subscription.products if p and p.strip()] or list(DEFAULT_PRODUCTS)
        msg: Dict[str, Any] = {"type": "subscribe", "product_ids": products}
        if subscription.authenticate:
            # The feed accepts the same signature as a GET of /users/self.
            headers = self.signed_headers("GET", f"{settings.EXCHANGE_BASE_URL}/users/self")
            msg["key"] = headers[HDR_API_KEY]
            msg["signature"] = headers[HDR_SIGNATURE]
            msg["timestamp"] = headers[HDR_TIMESTAMP]
            if HDR_PASSPHRASE in headers:
                msg["passphrase"] = headers[HDR_PASSPHRASE]
        return await FeedSubscription(settings.WS_FEED_URL, msg).open()
