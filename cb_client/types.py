from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from cb_core.paginator import PageRequest
from cb_client.errors import ValidationError


class Currency(str, Enum):
    BTC = "BTC"
    BCH = "BCH"
    ETH = "ETH"
    LTC = "LTC"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class MessageType(str, Enum):
    RECEIVED = "received"
    MARKET = "market"
    LIMIT = "limit"
    OPEN = "open"
    DONE = "done"
    MATCH = "match"
    ACTIVATE = "activate"
    ENTRY = "entry"
    HEARTBEAT = "heartbeat"
    SUBSCRIPTIONS = "subscriptions"
    ERROR = "error"


class Reason(str, Enum):
    FILLED = "filled"
    CANCELED = "canceled"


class Status(str, Enum):
    ACTIVE = "active"
    LOCKED = "locked"
    DEFAULT = "default"
    PENDING = "pending"
    OPEN = "open"
    DONE = "done"
    REJECTED = "rejected"


class TimeInForce(str, Enum):
    """Order lifetime policy; GTC is what the exchange applies when unset."""

    GTC = "GTC"
    GTT = "GTT"
    IOC = "IOC"
    FOK = "FOK"


class Period(str, Enum):
    MINUTE = "min"
    HOUR = "hour"
    DAY = "day"


class SelfTradePrevention(str, Enum):
    DECREASE_AND_CANCEL = "dc"
    CANCEL_OLDEST = "co"
    CANCEL_NEWEST = "cn"
    CANCEL_BOTH = "cb"


# --- records -----------------------------------------------------------------


@dataclass(frozen=True)
class Balance:
    amount: Optional[float]
    currency: str


@dataclass(frozen=True)
class Account:
    id: str
    name: str = ""
    primary: bool = False
    type: str = ""
    currency: str = ""
    balance: Optional[Balance] = None
    native_balance: Optional[Balance] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Address:
    id: str
    address: str = ""
    # User defined label.
    name: Optional[str] = None
    # Blockchain name.
    network: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Country:
    code: str
    name: str


@dataclass(frozen=True)
class Profile:
    id: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    name: Optional[str] = None
    profile_url: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None
    biography: Optional[str] = None
    time_zone: Optional[str] = None
    native_currency: Optional[str] = None
    bitcoin_unit: Optional[str] = None
    state: Optional[str] = None
    country: Optional[Country] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class CandleStick:
    time: float
    low: float
    high: float
    open: float
    close: float
    volume: float

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.time, tz=timezone.utc)


@dataclass(frozen=True)
class Ticker:
    trade_id: int
    price: float
    size: float
    bid: float
    ask: float
    volume: float
    time: Optional[datetime] = None


@dataclass(frozen=True)
class ExchangeRate:
    from_currency: str
    rates: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class OrderResponse:
    id: str
    price: float = 0.0
    size: float = 0.0
    product_id: str = ""
    side: Optional[str] = None
    stp: str = ""
    type: str = ""
    time_in_force: str = ""
    post_only: bool = False
    created_at: Optional[datetime] = None
    fill_fees: float = 0.0
    executed_value: float = 0.0
    status: Optional[str] = None
    settled: bool = False


@dataclass(frozen=True)
class Message:
    """One frame from the live feed; `error` is set when it could not be read."""

    type: Optional[str] = None
    product_id: str = ""
    sequence: int = 0
    time: Optional[datetime] = None
    order_id: str = ""
    trade_id: int = 0
    side: Optional[str] = None
    size: Optional[float] = None
    price: Optional[float] = None
    remaining_size: Optional[float] = None
    reason: Optional[str] = None
    maker_order_id: str = ""
    taker_order_id: str = ""
    message: str = ""
    raw: Optional[Dict[str, Any]] = None
    error: Optional[BaseException] = None


# --- request descriptors -------------------------------------------------------


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


@dataclass(frozen=True)
class AccountsRequest(PageRequest):
    pass


@dataclass(frozen=True)
class AddressesRequest(PageRequest):
    account_id: str = ""

    def validate(self) -> None:
        if _blank(self.account_id):
            raise ValidationError("expecting a non-empty account_id")


@dataclass(frozen=True)
class CreateAccountRequest:
    name: str

    def validate(self) -> None:
        if _blank(self.name):
            raise ValidationError("expecting a non-blank name")


@dataclass(frozen=True)
class UpdateAccountRequest:
    id: str
    name: str

    def validate(self) -> None:
        if _blank(self.id):
            raise ValidationError("expecting a non-empty account_id")
        if _blank(self.name):
            raise ValidationError("expecting a non-blank name")


@dataclass(frozen=True)
class CreateAddressRequest:
    account_id: str
    # Optional when creating an address on demand.
    name: str = ""

    def validate(self) -> None:
        if _blank(self.account_id):
            raise ValidationError("expecting a non-empty account_id")


@dataclass(frozen=True)
class CandleStickRequest:
    product: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    max_windows: int = 0
    throttle_ms: int = 0
    granularity_s: int = 0

    def validate(self) -> None:
        if _blank(self.product):
            raise ValidationError("expecting a non-blank product")
        for label, ts in (("start", self.start), ("end", self.end)):
            if ts is not None and ts.utcoffset() is None:
                raise ValidationError(f"expecting {label} to be timezone-aware")
        if self.start is not None and self.end is not None and self.end <= self.start:
            raise ValidationError("expecting end to be after start")


@dataclass(frozen=True)
class Order:
    """A new order for the exchange's matching engine.

    Price is in quote increments and is not needed for market orders; size
    is in base currency. For market orders either size or funds should be
    set, not both. cancel_after only applies with TimeInForce.GTT, and
    post_only is rejected by the exchange together with IOC or FOK.
    """

    product: str = ""
    side: Optional[Side] = None
    price: float = 0.0
    size: float = 0.0
    order_type: str = ""
    funds: float = 0.0
    self_trade_prevention: Optional[SelfTradePrevention] = None
    # Broadcast in the public feed's `received` message only.
    client_oid: str = ""
    time_in_force: Optional[TimeInForce] = None
    cancel_after: Optional[Period] = None
    post_only: bool = False
    overdraft_enabled: bool = False
    funding_amount: float = 0.0

    def validate(self) -> None:
        if _blank(self.product):
            raise ValidationError("expecting a non-blank product")
        if self.price <= 0 and self.size <= 0:
            raise ValidationError("expecting either price or size to have been set")
        if self.side is None:
            raise ValidationError("expecting side to be set")
        if self.cancel_after is not None and self.time_in_force != TimeInForce.GTT:
            raise ValidationError("cancel_after if set requires time_in_force to be GTT")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"product_id": self.product}
        if self.side is not None:
            payload["side"] = Side(self.side).value
        if self.order_type:
            payload["type"] = self.order_type
        if self.price > 0:
            payload["price"] = _num(self.price)
        if self.size > 0:
            payload["size"] = _num(self.size)
        if self.funds > 0:
            payload["funds"] = _num(self.funds)
        if self.self_trade_prevention is not None:
            payload["stp"] = SelfTradePrevention(self.self_trade_prevention).value
        if self.client_oid:
            payload["client_oid"] = self.client_oid
        if self.time_in_force is not None:
            payload["time_in_force"] = TimeInForce(self.time_in_force).value
        if self.cancel_after is not None:
            payload["cancel_after"] = Period(self.cancel_after).value
        if self.post_only:
            payload["post_only"] = True
        if self.overdraft_enabled:
            payload["overdraft_enabled"] = "true"
        if self.funding_amount > 0:
            payload["funding_amount"] = _num(self.funding_amount)
        return payload


def _num(value: float) -> str:
    # Exchange expects decimal strings; avoid scientific notation.
    return f"{value:.10f}".rstrip("0").rstrip(".")
