"""Coinbase REST and live-feed client built on the cb_core stream engine."""

from .client import Client
from .errors import APIError, CoinbaseError, CredentialsError, DecodeError, ValidationError
from .transport import Credentials
from .types import (
    Account,
    AccountsRequest,
    Address,
    AddressesRequest,
    CandleStick,
    CandleStickRequest,
    CreateAccountRequest,
    CreateAddressRequest,
    Currency,
    ExchangeRate,
    Message,
    Order,
    OrderResponse,
    Profile,
    Side,
    Ticker,
    TimeInForce,
    UpdateAccountRequest,
)
from .ws_stream import FeedSubscription, Subscription

__all__ = [
    "APIError",
    "Account",
    "AccountsRequest",
    "Address",
    "AddressesRequest",
    "CandleStick",
    "CandleStickRequest",
    "Client",
    "CoinbaseError",
    "CreateAccountRequest",
    "CreateAddressRequest",
    "Credentials",
    "CredentialsError",
    "Currency",
    "DecodeError",
    "ExchangeRate",
    "FeedSubscription",
    "Message",
    "Order",
    "OrderResponse",
    "Profile",
    "Side",
    "Subscription",
    "Ticker",
    "TimeInForce",
    "UpdateAccountRequest",
    "ValidationError",
]
