"""
Supabase Auth Adapter for identity resolution.

Implements the IdentityResolverPort by asking the Supabase Auth (GoTrue)
user endpoint who a bearer token belongs to.
"""

import logging
from typing import Optional

import httpx

from artwork_guide.domain.exceptions import AuthenticationError
from artwork_guide.interfaces.identity import IdentityResolverPort

logger = logging.getLogger(__name__)


class SupabaseIdentityAdapter(IdentityResolverPort):
    """Resolve access tokens with GET {supabase_url}/auth/v1/user."""

    def __init__(
        self,
        supabase_url: str = "http://127.0.0.1:54321",
        api_key: str = "",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._user_url = "{}/auth/v1/user".format(supabase_url.rstrip("/"))
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def verify(self, token: str) -> str:
        if not token:
            raise AuthenticationError()

        headers = {"Authorization": "Bearer {}".format(token)}
        if self._api_key:
            headers["apikey"] = self._api_key

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds, transport=self._transport
            ) as client:
                resp = await client.get(self._user_url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Identity provider request failed: %s", e)
            raise AuthenticationError() from e

        if resp.status_code != 200:
            raise AuthenticationError()

        try:
            user_id = resp.json().get("id")
        except ValueError:
            user_id = None

        if not user_id:
            raise AuthenticationError()

        return str(user_id)
