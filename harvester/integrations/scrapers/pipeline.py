"""Wiring for the ingestion pipeline: service construction, post-media persistence and paged ingestion."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from ...config import AppConfig, ConfigError
from ...utils.secrets import require_secret, secret_value
from .clients.scrapecreator import ScrapeCreatorClient
from .clients.scrapingdog import ScrapingDogClient
from .core.downloader import MediaDownloader
from .core.errors import IngestionError
from .core.handles import extract_instagram_handle, extract_tiktok_handle
from .core.models import (
    InstagramPost,
    PostMedia,
    PostsScrapingResult,
    ScrapingResult,
    SocialMediaAccount,
    SocialPlatform,
    TiktokPost,
    utc_now,
)
from .core.pagination import paginate
from .core.utils import SleepFn, media_retry_policy, vendor_retry_policy
from .platforms.facebook import FacebookScraper
from .platforms.instagram import InstagramScraper
from .platforms.tiktok import TikTokScraper
from .platforms.website import WebsiteScraper
from .storage.manager import MediaStorageService, build_s3_client

logger = logging.getLogger(__name__)

USER_AGENT = "Harvester/2025"
POSTS_UNAVAILABLE = "Failed to retrieve posts"


@dataclass(slots=True)
class IngestionServices:
    """Clients built once per process and injected into the scrapers."""

    config: AppConfig
    http: httpx.AsyncClient
    scrapecreator: Optional[ScrapeCreatorClient] = None
    scrapingdog: Optional[ScrapingDogClient] = None
    storage: Optional[MediaStorageService] = None

    def _require_scrapecreator(self) -> ScrapeCreatorClient:
        if self.scrapecreator is None:
            require_secret(self.config.scrapecreator_api_key, "SCRAPECREATOR_API_KEY")
            raise ConfigError("ScrapeCreator client was not initialised")
        return self.scrapecreator

    @property
    def instagram(self) -> InstagramScraper:
        return InstagramScraper(self._require_scrapecreator())

    @property
    def tiktok(self) -> TikTokScraper:
        return TikTokScraper(self._require_scrapecreator())

    @property
    def facebook(self) -> FacebookScraper:
        return FacebookScraper(self._require_scrapecreator())

    @property
    def website(self) -> WebsiteScraper:
        if self.scrapingdog is None:
            require_secret(self.config.scrapingdog_api_key, "SCRAPINGDOG_API_KEY")
            raise ConfigError("ScrapingDog client was not initialised")
        return WebsiteScraper(self.scrapingdog)


@asynccontextmanager
async def create_services(
    config: AppConfig,
    *,
    http: Optional[httpx.AsyncClient] = None,
    s3_client: Any = None,
    sleep: SleepFn = asyncio.sleep,
) -> AsyncIterator[IngestionServices]:
    """Build vendor clients and media storage from ``config``.

    Clients whose credentials are missing are left as ``None``; the matching
    scraper accessor raises :class:`ConfigError` when used. A caller-supplied
    ``http`` client is not closed on exit.
    """
    owns_http = http is None
    if http is None:
        http = httpx.AsyncClient(
            timeout=config.vendor_timeout_seconds,
            headers={"User-Agent": USER_AGENT},
        )

    vendor_policy = vendor_retry_policy(config)
    scrapecreator_key = secret_value(config.scrapecreator_api_key)
    scrapingdog_key = secret_value(config.scrapingdog_api_key)

    services = IngestionServices(config=config, http=http)
    if scrapecreator_key:
        services.scrapecreator = ScrapeCreatorClient(
            http, vendor_policy, api_key=scrapecreator_key, timeout=config.vendor_timeout_seconds, sleep=sleep
        )
    if scrapingdog_key:
        services.scrapingdog = ScrapingDogClient(
            http, vendor_policy, api_key=scrapingdog_key, timeout=config.vendor_timeout_seconds, sleep=sleep
        )
    if config.has_media_storage:
        downloader = MediaDownloader(
            http, media_retry_policy(config), timeout=config.media_fetch_timeout_seconds, sleep=sleep
        )
        client = s3_client if s3_client is not None else build_s3_client(config)
        services.storage = MediaStorageService.from_config(config, client, downloader)

    logger.info(
        "Ingestion services ready",
        extra={
            "event": "pipeline.services_ready",
            "extra_fields": {
                "scrapecreator": services.scrapecreator is not None,
                "scrapingdog": services.scrapingdog is not None,
                "media_storage": services.storage is not None,
            },
        },
    )
    try:
        yield services
    finally:
        if owns_http:
            await http.aclose()


# --------------------------------------------------------------------------- #
# Post media persistence
# --------------------------------------------------------------------------- #


class _MediaPersister:
    """Uploads the assets of one post, reusing results for repeated source URLs."""

    def __init__(self, storage: MediaStorageService, folder: str, prefix: str) -> None:
        self._storage = storage
        self._folder = folder
        self._prefix = prefix
        self._stored: Dict[str, Optional[str]] = {}

    async def store(self, source_url: str, label: str) -> Optional[str]:
        if source_url in self._stored:
            return self._stored[source_url]
        try:
            stored = await self._storage.store_from_url(source_url, self._folder, f"{self._prefix}_{label}")
        except IngestionError as exc:
            logger.warning(
                "Could not persist %s for %s: %s",
                label,
                self._prefix,
                exc,
                extra={"event": "media.persist_failed", "extra_fields": {"post": self._prefix, "label": label}},
            )
            stored = None
        self._stored[source_url] = stored
        return stored

    async def media_list(self, media_urls: List[PostMedia]) -> List[PostMedia]:
        persisted: List[PostMedia] = []
        for index, media in enumerate(media_urls):
            stored = await self.store(media.url, f"{media.type}_{index}")
            if stored is None:
                continue
            persisted.append(media.model_copy(update={"url": stored, "original_url": media.url}))
        return persisted


async def persist_instagram_post_media(
    storage: MediaStorageService, post: InstagramPost, handle: str
) -> InstagramPost:
    """Copy thumbnail and media of ``post`` to durable storage under ``instagram/posts``."""
    persister = _MediaPersister(storage, "instagram/posts", f"{handle}_{post.shortcode}")
    update: Dict[str, Any] = {}
    if post.thumbnail_url:
        update["thumbnail_url"] = await persister.store(post.thumbnail_url, "thumbnail")
        update["original_thumbnail_url"] = post.thumbnail_url
    update["media_urls"] = await persister.media_list(post.media_urls)
    return post.model_copy(update=update)


async def persist_tiktok_post_media(storage: MediaStorageService, post: TiktokPost, handle: str) -> TiktokPost:
    """Copy cover, video and media of ``post`` to durable storage under ``tiktok/posts``."""
    persister = _MediaPersister(storage, "tiktok/posts", f"{handle}_{post.shortcode}")
    update: Dict[str, Any] = {}
    if post.thumbnail_url:
        update["thumbnail_url"] = await persister.store(post.thumbnail_url, "thumbnail")
        update["original_thumbnail_url"] = post.thumbnail_url
    if post.video_url:
        update["video_url"] = await persister.store(post.video_url, "video_0")
        update["original_video_url"] = post.video_url
    update["media_urls"] = await persister.media_list(post.media_urls)
    return post.model_copy(update=update)


# --------------------------------------------------------------------------- #
# Paged ingestion
# --------------------------------------------------------------------------- #


async def _collect_pages(fetch_page, *, max_pages: int, label: str) -> PostsScrapingResult[Any]:
    pages: List[PostsScrapingResult[Any]] = []
    async for page in paginate(fetch_page, max_pages=max(1, max_pages)):
        pages.append(page)

    first = pages[0]
    good = [page for page in pages if page.success]
    if not good:
        return first
    if len(good) < len(pages):
        logger.warning("%s pagination stopped early: %s", label, pages[-1].error)

    posts: List[Any] = [post for page in good for post in (page.data or [])]
    last = good[-1]
    return PostsScrapingResult[Any].ok(
        posts, first.scraped_at, has_more=last.has_more, next_cursor=last.next_cursor
    )


async def ingest_instagram_posts(
    services: IngestionServices,
    handle_or_url: str,
    *,
    max_pages: Optional[int] = None,
    persist_media: bool = True,
) -> PostsScrapingResult[InstagramPost]:
    """Fetch up to ``max_pages`` pages of posts and persist their media when storage is configured."""
    scraper = services.instagram
    pages = max_pages or services.config.initial_pagination_batches

    async def _fetch(cursor):
        return await scraper.scrape_posts(handle_or_url, cursor)

    combined = await _collect_pages(_fetch, max_pages=pages, label="Instagram")
    if not combined.success:
        return PostsScrapingResult[InstagramPost].fail(combined.error or POSTS_UNAVAILABLE, combined.scraped_at)

    posts: List[InstagramPost] = list(combined.data or [])
    handle = extract_instagram_handle(handle_or_url) or "unknown"
    if persist_media and services.storage is not None:
        posts = [await persist_instagram_post_media(services.storage, post, handle) for post in posts]
    return PostsScrapingResult[InstagramPost].ok(
        posts, combined.scraped_at, has_more=combined.has_more, next_cursor=combined.next_cursor
    )


async def ingest_tiktok_posts(
    services: IngestionServices,
    handle_or_url: str,
    *,
    max_pages: Optional[int] = None,
    persist_media: bool = True,
) -> PostsScrapingResult[TiktokPost]:
    scraper = services.tiktok
    pages = max_pages or services.config.initial_pagination_batches

    async def _fetch(cursor):
        return await scraper.scrape_posts(handle_or_url, cursor)

    combined = await _collect_pages(_fetch, max_pages=pages, label="TikTok")
    if not combined.success:
        return PostsScrapingResult[TiktokPost].fail(combined.error or POSTS_UNAVAILABLE, combined.scraped_at)

    posts: List[TiktokPost] = list(combined.data or [])
    handle = extract_tiktok_handle(handle_or_url) or "unknown"
    if persist_media and services.storage is not None:
        posts = [await persist_tiktok_post_media(services.storage, post, handle) for post in posts]
    return PostsScrapingResult[TiktokPost].ok(
        posts, combined.scraped_at, has_more=combined.has_more, next_cursor=combined.next_cursor
    )


# --------------------------------------------------------------------------- #
# Account ingestion entry point
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class IngestionRequest:
    """Runtime options for one account ingestion."""

    platform: SocialPlatform
    handle_or_url: str
    include_posts: bool = True
    max_pages: Optional[int] = None
    persist_media: bool = True


@dataclass(slots=True)
class IngestionOutcome:
    """Outcome container returned to the caller."""

    profile: ScrapingResult[SocialMediaAccount]
    posts: Optional[PostsScrapingResult[Union[InstagramPost, TiktokPost]]] = None
    warnings: List[str] = field(default_factory=list)


async def ingest_account(services: IngestionServices, request: IngestionRequest) -> IngestionOutcome:
    """Scrape a profile and, where the platform supports it, its recent posts."""
    if request.platform is SocialPlatform.INSTAGRAM:
        profile = await services.instagram.scrape_profile(request.handle_or_url)
    elif request.platform is SocialPlatform.TIKTOK:
        profile = await services.tiktok.scrape_profile(request.handle_or_url)
    elif request.platform is SocialPlatform.FACEBOOK:
        profile = await services.facebook.scrape_profile(request.handle_or_url)
    else:
        profile = ScrapingResult[SocialMediaAccount].fail(
            f"Ingestion is not supported for {request.platform.value}", utc_now()
        )
        return IngestionOutcome(profile=profile)

    outcome = IngestionOutcome(profile=profile)
    if not profile.success or not request.include_posts:
        return outcome

    if request.platform is SocialPlatform.INSTAGRAM:
        outcome.posts = await ingest_instagram_posts(
            services, request.handle_or_url, max_pages=request.max_pages, persist_media=request.persist_media
        )
    elif request.platform is SocialPlatform.TIKTOK:
        outcome.posts = await ingest_tiktok_posts(
            services, request.handle_or_url, max_pages=request.max_pages, persist_media=request.persist_media
        )
    else:
        outcome.warnings.append(f"Post ingestion is not available for {request.platform.value}")

    if request.persist_media and services.storage is None and outcome.posts is not None:
        outcome.warnings.append("Media storage is not configured; posts reference vendor URLs")
    return outcome


def run_ingestion(config: AppConfig, request: IngestionRequest) -> IngestionOutcome:
    """Synchronous entry point for schedulers and scripts."""

    async def _run() -> IngestionOutcome:
        async with create_services(config) as services:
            return await ingest_account(services, request)

    return asyncio.run(_run())
