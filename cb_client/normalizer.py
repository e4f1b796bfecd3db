from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from cb_client.errors import DecodeError
from cb_client.types import (
    Account,
    Address,
    Balance,
    CandleStick,
    Country,
    ExchangeRate,
    Message,
    OrderResponse,
    Profile,
    Ticker,
)


_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_time(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    raw = str(value).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    # fromisoformat accepts at most microseconds.
    raw = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw, count=1)
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise DecodeError(f"invalid timestamp {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def iso8601(ts: datetime) -> str:
    """Format as the exchange expects, e.g. 2017-09-02T15:25:00.00000Z."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 10:05d}Z"


def _float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"invalid number {value!r}") from exc


def _str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _data(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise DecodeError("expecting a JSON object")
    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise DecodeError("expecting a JSON object under 'data'")
    return data


def _data_list(payload: Any) -> List[Mapping[str, Any]]:
    if not isinstance(payload, Mapping):
        raise DecodeError("expecting a JSON object")
    data = payload.get("data") or []
    if not isinstance(data, list):
        raise DecodeError("expecting a JSON list under 'data'")
    return data


def next_uri(payload: Any) -> Optional[str]:
    pagination = payload.get("pagination") if isinstance(payload, Mapping) else None
    if not isinstance(pagination, Mapping):
        return None
    uri = pagination.get("next_uri")
    return uri or None


def normalize_balance(row: Any) -> Optional[Balance]:
    if not isinstance(row, Mapping):
        return None
    return Balance(amount=_float(row.get("amount"), None), currency=str(row.get("currency") or ""))


def normalize_account(row: Mapping[str, Any]) -> Account:
    currency = row.get("currency") or ""
    # Newer API versions nest the currency as an object.
    if isinstance(currency, Mapping):
        currency = currency.get("code") or ""
    return Account(
        id=str(row.get("id") or ""),
        name=str(row.get("name") or ""),
        primary=bool(row.get("primary")),
        type=str(row.get("type") or ""),
        currency=str(currency),
        balance=normalize_balance(row.get("balance")),
        native_balance=normalize_balance(row.get("native_balance")),
        created_at=parse_time(row.get("created_at")),
        updated_at=parse_time(row.get("updated_at")),
    )


def normalize_address(row: Mapping[str, Any]) -> Address:
    return Address(
        id=str(row.get("id") or ""),
        address=str(row.get("address") or ""),
        name=_str(row.get("name")),
        network=_str(row.get("network")),
        created_at=parse_time(row.get("created_at")),
        updated_at=parse_time(row.get("updated_at")),
    )


def normalize_profile(row: Mapping[str, Any]) -> Profile:
    country = row.get("country")
    return Profile(
        id=str(row.get("id") or ""),
        username=_str(row.get("username")),
        avatar_url=_str(row.get("avatar_url")),
        name=_str(row.get("name")),
        profile_url=_str(row.get("profile_url")),
        email=_str(row.get("email")),
        location=_str(row.get("profile_location")),
        biography=_str(row.get("profile_bio")),
        time_zone=_str(row.get("time_zone")),
        native_currency=_str(row.get("native_currency")),
        bitcoin_unit=_str(row.get("bitcoin_unit")),
        state=_str(row.get("state")),
        country=Country(code=str(country.get("code") or ""), name=str(country.get("name") or ""))
        if isinstance(country, Mapping)
        else None,
        created_at=parse_time(row.get("created_at")),
    )


def decode_account(payload: Any) -> Account:
    return normalize_account(_data(payload))


def decode_accounts_page(payload: Any) -> Tuple[List[Account], Optional[str]]:
    return [normalize_account(row) for row in _data_list(payload)], next_uri(payload)


def decode_address(payload: Any) -> Address:
    return normalize_address(_data(payload))


def decode_addresses_page(payload: Any) -> Tuple[List[Address], Optional[str]]:
    return [normalize_address(row) for row in _data_list(payload)], next_uri(payload)


def decode_profile(payload: Any) -> Profile:
    return normalize_profile(_data(payload))


def decode_candles(payload: Any) -> List[CandleStick]:
    """Rows arrive as [time, low, high, open, close, volume]."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise DecodeError("expecting a JSON list of candle rows")
    candles: List[CandleStick] = []
    for row in payload:
        if not isinstance(row, (list, tuple)) or len(row) < 6:
            raise DecodeError("expecting data of the form: [time, low, high, open, close, volume]")
        candles.append(
            CandleStick(
                time=float(row[0]),
                low=float(row[1]),
                high=float(row[2]),
                open=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]),
            )
        )
    return candles


def decode_ticker(payload: Any) -> Ticker:
    if not isinstance(payload, Mapping):
        raise DecodeError("expecting a JSON object")
    # Numbers come back as strings.
    return Ticker(
        trade_id=int(payload.get("trade_id") or 0),
        price=_float(payload.get("price")),
        size=_float(payload.get("size")),
        bid=_float(payload.get("bid")),
        ask=_float(payload.get("ask")),
        volume=_float(payload.get("volume")),
        time=parse_time(payload.get("time")),
    )


def decode_exchange_rate(payload: Any) -> ExchangeRate:
    data = _data(payload)
    rates = data.get("rates") or {}
    if not isinstance(rates, Mapping):
        raise DecodeError("expecting 'rates' to be an object")
    return ExchangeRate(
        from_currency=str(data.get("currency") or ""),
        rates={str(k): _float(v) for k, v in rates.items()},
    )


def decode_order_response(payload: Any) -> OrderResponse:
    if not isinstance(payload, Mapping):
        raise DecodeError("expecting a JSON object")
    return OrderResponse(
        id=str(payload.get("id") or ""),
        price=_float(payload.get("price")),
        size=_float(payload.get("size")),
        product_id=str(payload.get("product_id") or ""),
        side=_str(payload.get("side")),
        stp=str(payload.get("stp") or ""),
        type=str(payload.get("type") or ""),
        time_in_force=str(payload.get("time_in_force") or ""),
        post_only=bool(payload.get("post_only")),
        created_at=parse_time(payload.get("created_at")),
        fill_fees=_float(payload.get("fill_fees")),
        executed_value=_float(payload.get("executed_value")),
        status=_str(payload.get("status")),
        settled=bool(payload.get("settled")),
    )


def decode_message(payload: Dict[str, Any]) -> Message:
    return Message(
        type=_str(payload.get("type")),
        product_id=str(payload.get("product_id") or ""),
        sequence=int(payload.get("sequence") or 0),
        time=parse_time(payload.get("time")),
        order_id=str(payload.get("order_id") or ""),
        trade_id=int(payload.get("trade_id") or 0),
        side=_str(payload.get("side")),
        size=_float(payload.get("size"), None),
        price=_float(payload.get("price"), None),
        remaining_size=_float(payload.get("remaining_size"), None),
        reason=_str(payload.get("reason")),
        maker_order_id=str(payload.get("maker_order_id") or ""),
        taker_order_id=str(payload.get("taker_order_id") or ""),
        message=str(payload.get("message") or ""),
        raw=payload,
    )
