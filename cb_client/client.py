from __future__ import annotations

import json
import logging
import os
import threading
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

import requests

from cb_client import settings
from cb_client.accounts import AccountsAPI
from cb_client.addresses import AddressesAPI
from cb_client.candles import CandlesAPI
from cb_client.errors import APIError, CredentialsError
from cb_client.market import MarketAPI
from cb_client.orders import OrdersAPI
from cb_client.transport import (
    HDR_API_KEY,
    HDR_PASSPHRASE,
    HDR_SIGNATURE,
    HDR_TIMESTAMP,
    HDR_VERSION,
    Credentials,
    sign,
)
from cb_client.users import UsersAPI
from cb_client.ws_stream import FeedAPI


log = logging.getLogger("cb_client.client")

_USER_AGENT = "cb-client/0.1"


class Client(AccountsAPI, AddressesAPI, CandlesAPI, FeedAPI, MarketAPI, OrdersAPI, UsersAPI):
    """Coinbase REST client.

    Credentials and the HTTP session may be swapped at any time; every
    request takes a consistent snapshot of both under the client lock.
    """

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        session: Optional[requests.Session] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._credentials = credentials
        self._session = session
        self.timeout_s = settings.HTTP_TIMEOUT_S if timeout_s is None else float(timeout_s)

    @classmethod
    def from_env(cls) -> "Client":
        missing = []
        api_key = os.getenv(settings.ENV_API_KEY, "").strip()
        if not api_key:
            missing.append(f"could not find {settings.ENV_API_KEY!r} in your environment")
        api_secret = os.getenv(settings.ENV_API_SECRET, "").strip()
        if not api_secret:
            missing.append(f"could not find {settings.ENV_API_SECRET!r} in your environment")
        if missing:
            raise CredentialsError("\n".join(missing))
        # Passphrase is optional; only trading and private exchange endpoints need it.
        passphrase = os.getenv(settings.ENV_API_PASSPHRASE, "").strip()
        return cls(Credentials(api_key=api_key, api_secret=api_secret, passphrase=passphrase))

    # --- configuration -------------------------------------------------------

    def set_credentials(self, credentials: Optional[Credentials]) -> None:
        if credentials is None:
            return
        with self._lock:
            self._credentials = credentials

    def set_passphrase(self, passphrase: str) -> None:
        with self._lock:
            creds = self._credentials or Credentials(api_key="", api_secret="")
            self._credentials = Credentials(creds.api_key, creds.api_secret, passphrase)

    def set_http_session(self, session: Optional[requests.Session]) -> None:
        with self._lock:
            self._session = session

    def _snapshot(self) -> Tuple[Optional[Credentials], requests.Session]:
        with self._lock:
            if self._session is None:
                self._session = requests.Session()
            return self._credentials, self._session

    def has_credentials(self) -> bool:
        with self._lock:
            creds = self._credentials
        return creds is not None and creds.complete

    def _require_credentials(self) -> None:
        if not self.has_credentials():
            raise CredentialsError("expecting API key and secret to have been set")

    # --- transport -----------------------------------------------------------

    def signed_headers(self, method: str, url: str, body: str = "") -> Dict[str, str]:
        creds, _ = self._snapshot()
        if creds is None or not creds.complete:
            raise CredentialsError("expecting API key and secret to have been set")
        parts = urlsplit(url)
        request_path = parts.path + (f"?{parts.query}" if parts.query else "")
        timestamp = str(int(time.time()))
        headers = {
            HDR_VERSION: settings.API_VERSION,
            HDR_TIMESTAMP: timestamp,
            HDR_API_KEY: creds.api_key,
            HDR_SIGNATURE: sign(creds.api_secret, timestamp, method, request_path, body),
        }
        if creds.passphrase:
            headers[HDR_PASSPHRASE] = creds.passphrase
        return headers

    def _request(
        self,
        method: str,
        url: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        auth: bool = True,
    ) -> Any:
        body = json.dumps(payload) if payload is not None else ""
        headers = {"Accept": "application/json", "User-Agent": _USER_AGENT}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        if auth:
            headers.update(self.signed_headers(method, url, body))

        _, session = self._snapshot()
        log.debug("%s %s", method, url)
        resp = session.request(
            method,
            url,
            headers=headers,
            data=body.encode("utf-8") if body else None,
            timeout=self.timeout_s,
        )
        if not 200 <= resp.status_code < 300:
            message = (resp.text or "").strip() or f"status {resp.status_code}"
            raise APIError(resp.status_code, message)
        if not resp.content:
            return None
        return resp.json()
