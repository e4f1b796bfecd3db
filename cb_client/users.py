from __future__ import annotations

from cb_client import settings
from cb_client.errors import ValidationError
from cb_client.normalizer import decode_profile
from cb_client.transport import build_url
from cb_client.types import Profile


class UsersAPI:
    def my_profile(self) -> Profile:
        url = build_url(settings.API_BASE_URL, "/v2/user")
        return decode_profile(self._request("GET", url))

    def find_profile_by_id(self, profile_id: str) -> Profile:
        if not profile_id or not profile_id.strip():
            raise ValidationError("expecting a non-blank profile id")
        url = build_url(settings.API_BASE_URL, f"/v2/users/{profile_id.strip()}")
        return decode_profile(self._request("GET", url))
