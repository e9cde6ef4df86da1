"""Durable media storage on an S3-compatible bucket."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from pathlib import PurePosixPath
from typing import Any, Callable, Optional
from urllib.parse import unquote, urlsplit

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ....config import AppConfig, ConfigError
from ....utils.media import (
    DEFAULT_WEBP_QUALITY,
    content_type_for_extension,
    extension_for,
    prepare_upload_asset,
)
from ....utils.secrets import secret_value
from ..core.downloader import MediaDownloader
from ..core.errors import StorageError
from ..core.models import MediaAsset

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=31536000"
FALLBACK_CONTENT_TYPE = "application/octet-stream"
FALLBACK_EXTENSION = "bin"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_EXTENSION = re.compile(r"[a-z0-9]{1,5}")


def build_s3_client(config: AppConfig) -> Any:
    """boto3 S3 client for the configured endpoint (GCS interoperability by default)."""
    return boto3.client(
        "s3",
        endpoint_url=config.storage_endpoint,
        aws_access_key_id=secret_value(config.media_storage_access_key_id),
        aws_secret_access_key=secret_value(config.media_storage_secret_access_key),
        region_name=config.media_storage_region,
        config=Config(signature_version="s3v4", retries={"max_attempts": 3}),
    )


def _split_name(name: str) -> tuple[str, Optional[str]]:
    path = PurePosixPath(name)
    suffix = path.suffix.lstrip(".").lower()
    if not _EXTENSION.fullmatch(suffix):
        return path.name, None
    return path.stem, suffix


def _safe_stem(stem: str) -> str:
    return _UNSAFE_CHARS.sub("-", stem).strip("-.")


def url_basename(source_url: str) -> tuple[Optional[str], Optional[str]]:
    """``(stem, extension)`` of the last path segment of ``source_url``."""
    name = PurePosixPath(unquote(urlsplit(source_url).path)).name
    if not name:
        return None, None
    stem, extension = _split_name(name)
    return (_safe_stem(stem) or None), extension


def derive_filename(
    source_url: str,
    content_type: str,
    filename: Optional[str] = None,
    *,
    now_ms: Optional[int] = None,
) -> str:
    """Pick ``stem.ext`` for an object.

    The stem comes from ``filename`` when given, otherwise from the URL, and
    falls back to ``file-<unix ms>``. An extension on ``filename`` is kept;
    otherwise it follows the content type, then the URL, then ``bin``.
    """
    url_stem, url_extension = url_basename(source_url)
    given_stem, given_extension = _split_name(filename) if filename else (None, None)
    stem = _safe_stem(given_stem) if given_stem else url_stem
    if not stem:
        stamp = now_ms if now_ms is not None else int(time.time() * 1000)
        stem = f"file-{stamp}"
    extension = given_extension or extension_for(content_type) or url_extension or FALLBACK_EXTENSION
    return f"{stem}.{extension}"


def _replace_extension(filename: str, content_type: str) -> str:
    extension = extension_for(content_type)
    if not extension:
        return filename
    stem, _ = _split_name(filename)
    return f"{stem}.{extension}"


class MediaStorageService:
    """Fetch remote media, transcode where needed and persist it under a public URL."""

    def __init__(
        self,
        s3_client: Any,
        downloader: MediaDownloader,
        *,
        bucket: str,
        public_host: str,
        webp_quality: int = DEFAULT_WEBP_QUALITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not bucket:
            raise ConfigError("MEDIA_BUCKET_NAME is required. Set it in the environment or .env file.")
        self._s3 = s3_client
        self._downloader = downloader
        self._bucket = bucket
        self._public_host = public_host.rstrip("/")
        self._webp_quality = webp_quality
        self._clock = clock

    @classmethod
    def from_config(cls, config: AppConfig, s3_client: Any, downloader: MediaDownloader) -> "MediaStorageService":
        return cls(
            s3_client,
            downloader,
            bucket=config.media_bucket_name or "",
            public_host=config.media_storage_host,
            webp_quality=config.webp_quality,
        )

    def public_url(self, destination_path: str) -> str:
        return f"https://{self._public_host}/{self._bucket}/{destination_path.lstrip('/')}"

    async def upload(self, data: bytes, destination_path: str, content_type: str) -> str:
        """Write ``data`` to ``destination_path`` (last write wins) and return its public URL."""
        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self._bucket,
                Key=destination_path,
                Body=data,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Upload of {destination_path} failed: {exc}") from exc
        return self.public_url(destination_path)

    async def store_asset_from_url(
        self,
        source_url: str,
        destination_folder: str,
        filename: Optional[str] = None,
    ) -> MediaAsset:
        media = await self._downloader.fetch(source_url)
        _, url_extension = url_basename(source_url)
        detected = media.content_type or content_type_for_extension(url_extension) or FALLBACK_CONTENT_TYPE

        asset = await asyncio.to_thread(prepare_upload_asset, media.content, detected, quality=self._webp_quality)
        name = derive_filename(source_url, detected, filename, now_ms=int(self._clock() * 1000))
        if asset.transcoded:
            name = _replace_extension(name, asset.content_type)

        destination_path = f"{destination_folder.strip('/')}/{name}" if destination_folder.strip("/") else name
        public_url = await self.upload(asset.data, destination_path, asset.content_type)
        logger.info(
            "Stored %s as %s",
            detected,
            destination_path,
            extra={
                "event": "media.stored",
                "extra_fields": {
                    "destination": destination_path,
                    "content_type": asset.content_type,
                    "transcoded": asset.transcoded,
                    "size": len(asset.data),
                },
            },
        )
        return MediaAsset(
            source_url=source_url,
            detected_content_type=detected,
            destination_path=destination_path,
            final_content_type=asset.content_type,
            public_url=public_url,
        )

    async def store_from_url(
        self,
        source_url: str,
        destination_folder: str,
        filename: Optional[str] = None,
    ) -> str:
        asset = await self.store_asset_from_url(source_url, destination_folder, filename)
        return asset.public_url
