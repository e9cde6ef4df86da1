from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from .errors import MediaFetchError
from .utils import RetryPolicy, SleepFn, execute_with_policy

logger = logging.getLogger(__name__)


def parse_content_type(header: str | None) -> str:
    """Base MIME type of a Content-Type header, lowercased, without parameters."""
    if not header:
        return ""
    return header.split(";")[0].strip().lower()


@dataclass(slots=True)
class DownloadedMedia:
    url: str
    content: bytes
    content_type: str


class MediaDownloader:
    """Fetch remote media bytes with per-attempt timeout and bounded retries.

    Client errors (4xx) fail immediately. Timeouts, server errors and transport
    failures are retried according to ``policy``; when attempts run out the
    last cause is wrapped in a single :class:`MediaFetchError`.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        policy: RetryPolicy,
        *,
        timeout: float = 30.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._http = http
        self._policy = policy
        self._timeout = timeout
        self._sleep = sleep

    async def fetch(self, url: str) -> DownloadedMedia:
        async def _attempt() -> DownloadedMedia:
            return await self._fetch_once(url)

        try:
            return await execute_with_policy(
                _attempt,
                self._policy,
                logger=logger,
                label="Media fetch",
                sleep=self._sleep,
            )
        except MediaFetchError as exc:
            if not exc.retryable:
                raise
            raise MediaFetchError(
                f"Failed to fetch {url} after {self._policy.max_attempts} attempts: {exc}",
                status_code=exc.status_code,
                retryable=False,
            ) from exc

    async def _fetch_once(self, url: str) -> DownloadedMedia:
        try:
            response = await self._http.get(url, timeout=self._timeout, follow_redirects=True)
        except httpx.TimeoutException as exc:
            raise MediaFetchError(f"timed out after {self._timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise MediaFetchError(str(exc) or exc.__class__.__name__) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            raise MediaFetchError(f"Invalid media URL: {exc}", retryable=False) from exc

        status = response.status_code
        if 400 <= status < 500:
            raise MediaFetchError(
                f"Failed to fetch {url}: HTTP {status}",
                status_code=status,
                retryable=False,
            )
        if not response.is_success:
            raise MediaFetchError(f"HTTP {status}", status_code=status)

        return DownloadedMedia(
            url=url,
            content=response.content,
            content_type=parse_content_type(response.headers.get("content-type")),
        )
