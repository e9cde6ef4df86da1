"""Shared transport for scraping vendors: one GET, 429-only retry."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from ..core.errors import VendorHTTPError, VendorRequestError, VendorTimeoutError
from ..core.utils import RetryPolicy, SleepFn, execute_with_policy

logger = logging.getLogger(__name__)


class VendorClient:
    """GET requests against a vendor API on a shared :class:`httpx.AsyncClient`.

    Only HTTP 429 is retried, with the backoff described by ``policy``. Every
    other failure surfaces on the first attempt. Error messages never include
    the request URL (it may carry an API key).
    """

    vendor: str = "vendor"

    def __init__(
        self,
        http: httpx.AsyncClient,
        policy: RetryPolicy,
        *,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._http = http
        self._policy = policy
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._sleep = sleep

    async def request(self, url: str, params: Mapping[str, Any] | None = None) -> httpx.Response:
        async def _attempt() -> httpx.Response:
            return await self._get_once(url, params)

        return await execute_with_policy(
            _attempt,
            self._policy,
            logger=logger,
            label=f"{self.vendor} request",
            sleep=self._sleep,
        )

    async def _get_once(self, url: str, params: Mapping[str, Any] | None) -> httpx.Response:
        try:
            response = await self._http.get(
                url,
                params=dict(params or {}),
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise VendorTimeoutError(self.vendor, f"{self.vendor} request timed out after {self._timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise VendorRequestError(self.vendor, f"{self.vendor} request failed: {exc.__class__.__name__}") from exc

        if not response.is_success:
            raise VendorHTTPError(self.vendor, response.status_code, response.reason_phrase or None)
        return response
