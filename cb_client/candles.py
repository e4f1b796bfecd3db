from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List

from cb_client import settings
from cb_client.normalizer import decode_candles, iso8601
from cb_client.transport import build_url
from cb_client.types import CandleStick, CandleStickRequest
from cb_core.paginator import StreamResponse, resolve_throttle
from cb_core.windows import TimeWindow, WindowPage, WindowPlan, stream_windows


log = logging.getLogger("cb_client.candles")


class CandlesAPI:
    async def candle_sticks(self, req: CandleStickRequest) -> StreamResponse[WindowPage[CandleStick]]:
        """Historic rates for a product, split into time windows fetched in parallel.

        Pages arrive in completion order; each carries its window so callers
        can reassemble time order. A failed window is reported on its page
        and does not stop the others.
        """
        req.validate()
        product = req.product.strip()
        plan = WindowPlan.build(
            req.start,
            req.end,
            granularity_s=req.granularity_s,
            max_windows=req.max_windows,
            default_increment=timedelta(seconds=settings.CANDLE_WINDOW_S),
            max_granularity_s=settings.CANDLE_MAX_GRANULARITY_S,
        )
        path = f"/products/{product}/candles"

        def fetch(window: TimeWindow) -> List[CandleStick]:
            params: Dict[str, Any] = {}
            if window.start is not None:
                params["start"] = iso8601(window.start)
            if window.end is not None:
                params["end"] = iso8601(window.end)
            if req.granularity_s > 0:
                params["granularity"] = req.granularity_s
            url = build_url(settings.EXCHANGE_BASE_URL, path, params)
            return decode_candles(self._request("GET", url, auth=False))

        log.info(
            "Fetching candles product=%s windows=%s increment=%s",
            product,
            plan.max_windows or 1,
            plan.increment,
        )
        return stream_windows(
            fetch,
            plan,
            throttle_s=resolve_throttle(req.throttle_ms, settings.CANDLE_THROTTLE_MS),
            workers=settings.CANDLE_WORKERS,
            name=f"candles:{product}",
        )
