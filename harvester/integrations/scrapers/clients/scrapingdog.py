"""ScrapingDog API client (rendered web pages)."""

from __future__ import annotations

import asyncio
import json

import httpx

from ..core.errors import VendorResponseError
from ..core.utils import RetryPolicy, SleepFn
from .base import VendorClient

API_URL = "https://api.scrapingdog.com/scrape"


class ScrapingDogClient(VendorClient):
    vendor = "ScrapingDog"

    def __init__(
        self,
        http: httpx.AsyncClient,
        policy: RetryPolicy,
        *,
        api_key: str,
        timeout: float = 30.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        super().__init__(http, policy, timeout=timeout, sleep=sleep)
        self._api_key = api_key

    async def scrape(self, url: str, *, dynamic: bool = False, markdown: bool = False) -> str:
        params = {
            "api_key": self._api_key,
            "url": url,
            "dynamic": "true" if dynamic else "false",
            "markdown": "true" if markdown else "false",
        }
        response = await self.request(API_URL, params)
        return self._extract_content(response)

    async def scrape_as_markdown(self, url: str, *, dynamic: bool = False) -> str:
        return await self.scrape(url, dynamic=dynamic, markdown=True)

    def _extract_content(self, response: httpx.Response) -> str:
        # Markdown mode answers with the page body itself; other modes may wrap it in {"data": ...}.
        content_type = response.headers.get("content-type", "")
        if "json" not in content_type.lower():
            return response.text
        try:
            payload = response.json()
        except json.JSONDecodeError:
            return response.text
        if isinstance(payload, str):
            return payload
        if isinstance(payload, dict):
            data = payload.get("data")
            return data if isinstance(data, str) else ""
        raise VendorResponseError(self.vendor, "ScrapingDog returned an unexpected payload")
