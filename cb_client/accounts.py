from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from cb_client import settings
from cb_client.errors import ValidationError
from cb_client.normalizer import decode_account, decode_accounts_page
from cb_client.transport import build_url
from cb_client.types import Account, AccountsRequest, CreateAccountRequest, UpdateAccountRequest
from cb_core.paginator import Page, StreamResponse, resolve_throttle, stream_pages


log = logging.getLogger("cb_client.accounts")

ACCOUNTS_PATH = "/v2/accounts"


def _account_path(account_id: str) -> str:
    if not account_id or not account_id.strip():
        raise ValidationError("expecting a non-empty account_id")
    return f"{ACCOUNTS_PATH}/{account_id.strip()}"


class AccountsAPI:
    """Wallet accounts: cursor-paginated listing plus single-account CRUD."""

    async def list_accounts(self, req: Optional[AccountsRequest] = None) -> StreamResponse[Page[Account]]:
        if req is None:
            req = AccountsRequest()
        self._require_credentials()

        first_cursor = build_url("", ACCOUNTS_PATH, req.query_params())

        def fetch(cursor: str) -> Tuple[List[Account], Optional[str]]:
            payload = self._request("GET", f"{settings.API_BASE_URL}{cursor}")
            return decode_accounts_page(payload)

        log.debug("Listing accounts (max_page=%d)", req.max_page)
        return stream_pages(
            fetch,
            first_cursor,
            max_page=req.max_page,
            throttle_s=resolve_throttle(req.throttle_ms, settings.PAGE_THROTTLE_MS),
            name="accounts",
        )

    def find_account_by_id(self, account_id: str) -> Account:
        url = build_url(settings.API_BASE_URL, _account_path(account_id))
        return decode_account(self._request("GET", url))

    def create_account(self, req: CreateAccountRequest) -> Account:
        req.validate()
        url = build_url(settings.API_BASE_URL, ACCOUNTS_PATH)
        return decode_account(self._request("POST", url, payload={"name": req.name}))

    def update_account(self, req: UpdateAccountRequest) -> Account:
        req.validate()
        url = build_url(settings.API_BASE_URL, _account_path(req.id))
        return decode_account(self._request("PUT", url, payload={"name": req.name}))

    def set_account_as_primary(self, account_id: str) -> Account:
        url = build_url(settings.API_BASE_URL, f"{_account_path(account_id)}/primary")
        return decode_account(self._request("POST", url))

    def delete_account_by_id(self, account_id: str) -> None:
        url = build_url(settings.API_BASE_URL, _account_path(account_id))
        self._request("DELETE", url)
        log.info("Deleted account %s", account_id)
