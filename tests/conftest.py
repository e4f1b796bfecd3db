"""Pytest configuration.

The project is intentionally lightweight and does not require installation as
an editable package for development. In CI/automation environments, however,
`pytest` may be executed without the repository root on `sys.path`, which
breaks imports like `import cb_client...`.

This file ensures the repository root is importable and provides a fake
Coinbase backend that plugs into the client as its HTTP session.
"""

from __future__ import annotations

import json
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cb_client.client import Client  # noqa: E402
from cb_client.transport import (  # noqa: E402
    HDR_API_KEY,
    HDR_SIGNATURE,
    HDR_TIMESTAMP,
    Credentials,
    sign,
)


API_KEY = "test-key"
API_SECRET = "test-secret"


class _FakeResponse:
    def __init__(self, payload: Any, status: int = 200):
        self.status_code = status
        if payload is None:
            self.content = b""
        elif isinstance(payload, str):
            self.content = payload.encode("utf-8")
        else:
            self.content = json.dumps(payload).encode("utf-8")
        self.text = self.content.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.content)


class _Call:
    def __init__(self, method: str, url: str, headers: Dict[str, str], body: bytes):
        parts = urlsplit(url)
        self.method = method
        self.url = url
        self.path = parts.path
        self.query = dict(parse_qsl(parts.query))
        self.raw_query = parts.query
        self.headers = headers
        self.body = json.loads(body) if body else None

    @property
    def signed(self) -> bool:
        return HDR_SIGNATURE in self.headers


Handler = Callable[[_Call], Tuple[Any, int]]


class FakeBackend:
    """Stands in for requests.Session.

    Routes are keyed by (METHOD, path). Signed requests are verified against
    the shared secret and answered with 401 on mismatch, like the real API.
    """

    def __init__(self, secret: str = API_SECRET):
        self.secret = secret
        self.calls: List[_Call] = []
        self._routes: Dict[Tuple[str, str], Handler] = {}
        self._lock = threading.Lock()

    def route(self, method: str, path: str, payload: Any = None, status: int = 200, handler: Optional[Handler] = None):
        if handler is None:
            def handler(_call: _Call, _payload=payload, _status=status):
                return _payload, _status
        self._routes[(method.upper(), path)] = handler

    def _signature_ok(self, call: _Call, body: bytes) -> bool:
        parts = urlsplit(call.url)
        request_path = parts.path + (f"?{parts.query}" if parts.query else "")
        expected = sign(
            self.secret,
            call.headers.get(HDR_TIMESTAMP, ""),
            call.method,
            request_path,
            body.decode("utf-8") if body else "",
        )
        return call.headers.get(HDR_SIGNATURE) == expected and call.headers.get(HDR_API_KEY) == API_KEY

    def request(self, method, url, headers=None, data=None, timeout=None):
        call = _Call(method.upper(), url, dict(headers or {}), data or b"")
        with self._lock:
            self.calls.append(call)
        if call.signed and not self._signature_ok(call, data or b""):
            return _FakeResponse({"message": "invalid signature"}, status=401)
        handler = self._routes.get((call.method, call.path))
        if handler is None:
            return _FakeResponse({"message": "NotFound"}, status=404)
        payload, status = handler(call)
        return _FakeResponse(payload, status=status)

    def calls_to(self, method: str, path: str) -> List[_Call]:
        with self._lock:
            return [c for c in self.calls if c.method == method and c.path == path]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def client(backend: FakeBackend) -> Client:
    return Client(Credentials(api_key=API_KEY, api_secret=API_SECRET, passphrase="pp"), session=backend)


@pytest.fixture
def anon_client(backend: FakeBackend) -> Client:
    return Client(session=backend)
