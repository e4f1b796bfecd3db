from __future__ import annotations

import logging

from cb_client import settings
from cb_client.errors import ValidationError
from cb_client.normalizer import decode_order_response
from cb_client.transport import build_url
from cb_client.types import Order, OrderResponse


log = logging.getLogger("cb_client.orders")


class OrdersAPI:
    def order(self, o: Order) -> OrderResponse:
        o.validate()
        url = build_url(settings.EXCHANGE_BASE_URL, "/orders")
        resp = decode_order_response(self._request("POST", url, payload=o.to_payload()))
        log.info("Placed order id=%s product=%s side=%s status=%s", resp.id, resp.product_id, resp.side, resp.status)
        return resp

    def cancel_order(self, order_id: str) -> None:
        if not order_id or not order_id.strip():
            raise ValidationError("expecting a non-blank order_id")
        url = build_url(settings.EXCHANGE_BASE_URL, f"/orders/{order_id.strip()}")
        self._request("DELETE", url)
        log.info("Canceled order id=%s", order_id.strip())
