from __future__ import annotations

from typing import List, Optional, Tuple

from cb_client import settings
from cb_client.normalizer import decode_address, decode_addresses_page
from cb_client.transport import build_url
from cb_client.types import Address, AddressesRequest, CreateAddressRequest
from cb_core.paginator import Page, StreamResponse, resolve_throttle, stream_pages


def _addresses_path(account_id: str) -> str:
    return f"/v2/accounts/{account_id.strip()}/addresses"


class AddressesAPI:
    async def list_addresses(self, req: AddressesRequest) -> StreamResponse[Page[Address]]:
        req.validate()
        self._require_credentials()

        first_cursor = build_url("", _addresses_path(req.account_id), req.query_params())

        def fetch(cursor: str) -> Tuple[List[Address], Optional[str]]:
            payload = self._request("GET", f"{settings.API_BASE_URL}{cursor}")
            return decode_addresses_page(payload)

        return stream_pages(
            fetch,
            first_cursor,
            max_page=req.max_page,
            throttle_s=resolve_throttle(req.throttle_ms, settings.PAGE_THROTTLE_MS),
            name=f"addresses:{req.account_id.strip()}",
        )

    def create_address(self, req: CreateAddressRequest) -> Address:
        """Create a fresh receive address; the name label is optional."""
        req.validate()
        url = build_url(settings.API_BASE_URL, _addresses_path(req.account_id))
        payload = {"name": req.name} if req.name else {}
        return decode_address(self._request("POST", url, payload=payload))
