"""ScrapeCreator API client (social profiles and posts)."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional, Union

import httpx

from ..core.errors import VendorResponseError
from ..core.utils import RetryPolicy, SleepFn
from .base import VendorClient

API_URL_V1 = "https://api.scrapecreators.com/v1"
API_URL_V2 = "https://api.scrapecreators.com/v2"
API_URL_V3 = "https://api.scrapecreators.com/v3"

UNSUCCESSFUL_RESPONSE = "ScrapeCreator API returned unsuccessful response"


def _bare(handle: str) -> str:
    return handle.strip().lstrip("@")


class ScrapeCreatorClient(VendorClient):
    vendor = "ScrapeCreator"

    def __init__(
        self,
        http: httpx.AsyncClient,
        policy: RetryPolicy,
        *,
        api_key: str,
        timeout: float = 30.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        super().__init__(http, policy, timeout=timeout, headers={"x-api-key": api_key}, sleep=sleep)

    async def get_json(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET ``endpoint`` and return the decoded body, rejecting ``success: false``."""
        response = await self.request(endpoint, params)
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise VendorResponseError(self.vendor, "ScrapeCreator API returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise VendorResponseError(self.vendor, "ScrapeCreator API returned an unexpected payload")
        if payload.get("success") is False:
            raise VendorResponseError(self.vendor, UNSUCCESSFUL_RESPONSE)
        return payload

    async def instagram_profile(self, handle: str) -> Dict[str, Any]:
        return await self.get_json(f"{API_URL_V1}/instagram/profile", {"handle": _bare(handle), "trim": "true"})

    async def instagram_posts(self, handle: str, cursor: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"handle": _bare(handle), "trim": "true"}
        if cursor:
            params["max_id"] = cursor
        return await self.get_json(f"{API_URL_V2}/instagram/user/posts", params)

    async def tiktok_profile(self, handle: str) -> Dict[str, Any]:
        return await self.get_json(f"{API_URL_V1}/tiktok/profile", {"handle": _bare(handle)})

    async def tiktok_posts(self, handle: str, cursor: Optional[Union[str, int]] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"handle": _bare(handle), "sort_by": "latest", "trim": "true"}
        if cursor is not None:
            params["cursor"] = str(cursor)
        return await self.get_json(f"{API_URL_V3}/tiktok/profile/videos", params)

    async def facebook_profile(self, page_url: str) -> Dict[str, Any]:
        return await self.get_json(f"{API_URL_V1}/facebook/profile", {"url": page_url})
