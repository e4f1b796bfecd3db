from __future__ import annotations

from dataclasses import replace
from typing import Optional, Union

from cb_client import settings
from cb_client.errors import ValidationError
from cb_client.normalizer import decode_exchange_rate, decode_ticker
from cb_client.transport import build_url
from cb_client.types import Currency, ExchangeRate, Ticker


class MarketAPI:
    """Public market data; no credentials required."""

    def ticker(self, product: str) -> Ticker:
        if not product or not product.strip():
            raise ValidationError("expecting a non-blank product")
        url = build_url(settings.EXCHANGE_BASE_URL, f"/products/{product.strip()}/ticker")
        return decode_ticker(self._request("GET", url, auth=False))

    def exchange_rate(self, currency: Optional[Union[Currency, str]] = None) -> ExchangeRate:
        """Rates quoted against a primary currency.

        `currency` is PRIMARY (all rates), or PRIMARY-SEC1-SEC2... to keep
        only the listed secondaries. Blank asks for the account default.
        """
        raw = currency.value if isinstance(currency, Currency) else (currency or "")
        parts = [p.strip().upper() for p in raw.split("-") if p.strip()]
        primary = parts[0] if parts else ""
        secondaries = parts[1:]

        params = {"currency": primary} if primary else None
        url = build_url(settings.API_BASE_URL, "/v2/exchange-rates", params)
        rate = decode_exchange_rate(self._request("GET", url, auth=False))
        if primary:
            rate = replace(rate, from_currency=primary)
        if not secondaries:
            return rate
        # Secondaries the server did not quote come back as 0.
        return replace(rate, rates={sec: rate.rates.get(sec, 0.0) for sec in secondaries})
