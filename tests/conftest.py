from __future__ import annotations

from typing import Any, Callable, Dict, List

import httpx
import pytest

from harvester.config import AppConfig
from harvester.integrations.scrapers.core.utils import RetryPolicy, media_retry_policy, vendor_retry_policy

ENV_NAMES = (
    "APP_ENVIRONMENT",
    "APP_ENV",
    "APP_LOG_PATH",
    "LOG_PATH",
    "APP_LOG_LEVEL",
    "LOG_LEVEL",
    "SCRAPECREATOR_API_KEY",
    "SCRAPINGDOG_API_KEY",
    "MEDIA_BUCKET_NAME",
    "GOOGLE_CLOUD_MEDIA_BUCKET_NAME",
    "MEDIA_STORAGE_HOST",
    "MEDIA_STORAGE_ENDPOINT_URL",
    "MEDIA_STORAGE_ACCESS_KEY_ID",
    "MEDIA_STORAGE_SECRET_ACCESS_KEY",
    "MEDIA_STORAGE_REGION",
    "APP_VENDOR_BACKOFF_BASE_SECONDS",
    "APP_VENDOR_BACKOFF_CAP_SECONDS",
    "APP_WEBP_QUALITY",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    yield


class RecordingSleep:
    """Stands in for ``asyncio.sleep`` and remembers every requested delay."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(float(delay))


class FakeS3:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.error = error

    def put_object(self, **kwargs: Any) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.calls.append(kwargs)
        return {"ETag": '"fake"'}


class RecordingTransport:
    """Wraps a request handler in ``httpx.MockTransport`` and keeps the requests it saw."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_transport():
    return RecordingTransport


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        _env_file=None,
        APP_ENVIRONMENT="test",
        APP_LOG_PATH=str(tmp_path / "logs" / "harvester.log"),
        SCRAPECREATOR_API_KEY="sc-test-key",
        SCRAPINGDOG_API_KEY="sd-test-key",
        MEDIA_BUCKET_NAME="media-bucket",
    )


@pytest.fixture
def vendor_policy(app_config) -> RetryPolicy:
    policy = vendor_retry_policy(app_config)
    return RetryPolicy(
        max_attempts=policy.max_attempts,
        base_delay=policy.base_delay,
        max_delay=policy.max_delay,
        jitter_ratio=policy.jitter_ratio,
        retryable=policy.retryable,
        rand=lambda: 0.5,
    )


@pytest.fixture
def media_policy(app_config) -> RetryPolicy:
    return media_retry_policy(app_config)


@pytest.fixture
def fake_s3() -> FakeS3:
    return FakeS3()
