from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

HDR_TIMESTAMP = "CB-ACCESS-TIMESTAMP"
HDR_API_KEY = "CB-ACCESS-KEY"
HDR_SIGNATURE = "CB-ACCESS-SIGN"
HDR_PASSPHRASE = "CB-ACCESS-PASSPHRASE"
HDR_VERSION = "CB-VERSION"


@dataclass(frozen=True)
class Credentials:
    api_key: str
    api_secret: str
    # Only needed for trading and other private exchange endpoints.
    passphrase: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.api_key) and bool(self.api_secret)


def sign(secret: str, timestamp: str, method: str, request_path: str, body: str = "") -> str:
    """Hex HMAC-SHA256 of timestamp + METHOD + request path (with query) + body."""
    prehash = f"{timestamp}{method.upper()}{request_path}{body}"
    return hmac.new(secret.encode("utf-8"), prehash.encode("utf-8"), hashlib.sha256).hexdigest()


def build_url(base_url: str, path: str, params: Optional[Dict[str, Any]] = None) -> str:
    url = f"{base_url}{path}"
    if params:
        query = urlencode(sorted((k, str(v)) for k, v in params.items()))
        url = f"{url}?{query}"
    return url
