"""TikTok profile and video ingestion via ScrapeCreator."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Tuple, Union

from ..clients.scrapecreator import ScrapeCreatorClient
from ..core.errors import NormalizationError
from ..core.handles import extract_tiktok_handle
from ..core.models import (
    PostMedia,
    PostsScrapingResult,
    ScrapingResult,
    SocialMediaAccount,
    SocialPlatform,
    TikTokCommerceUserInfo,
    TikTokPlatformData,
    TikTokProfileTab,
    TiktokPost,
    utc_now,
)
from ..core.pagination import PaginationState
from .common import (
    as_bool,
    as_int,
    as_mapping,
    as_str,
    count,
    counter,
    first_url,
    from_unix_seconds,
    items_with_id,
    millis_to_seconds,
)

logger = logging.getLogger(__name__)

INVALID_HANDLE = "Invalid TikTok handle or URL"
PROFILE_UNAVAILABLE = "Failed to retrieve TikTok profile data"
POSTS_UNAVAILABLE = "Failed to retrieve TikTok posts data"


def _commerce_info(raw: Any) -> Optional[TikTokCommerceUserInfo]:
    if not isinstance(raw, Mapping):
        return None
    return TikTokCommerceUserInfo(
        commerce_user=as_bool(raw.get("commerceUser")),
        category=as_str(raw.get("category")),
        category_button=as_bool(raw.get("categoryButton")),
    )


def _profile_tab(raw: Any) -> Optional[TikTokProfileTab]:
    if not isinstance(raw, Mapping):
        return None
    return TikTokProfileTab(
        show_music_tab=as_bool(raw.get("showMusicTab")),
        show_question_tab=as_bool(raw.get("showQuestionTab")),
        show_playlist_tab=as_bool(raw.get("showPlayListTab")),
    )


def normalize_tiktok_profile(payload: Mapping[str, Any]) -> SocialMediaAccount:
    """Map a ``v1/tiktok/profile`` body (``{"user": ..., "stats": ...}``)."""
    user = as_mapping(payload.get("user"))
    stats = as_mapping(payload.get("stats"))
    user_id = as_str(user.get("id"))
    if not user_id:
        raise NormalizationError(PROFILE_UNAVAILABLE)

    commerce = _commerce_info(user.get("commerceUserInfo"))
    organization = user.get("isOrganization")
    platform_data = TikTokPlatformData(
        short_id=as_str(user.get("shortId")),
        sec_uid=as_str(user.get("secUid")),
        heart_count=count(stats.get("heartCount")),
        video_count=count(stats.get("videoCount")),
        digg_count=count(stats.get("diggCount")),
        friend_count=count(stats.get("friendCount")),
        commerce_user_info=commerce,
        profile_tab=_profile_tab(user.get("profileTab")),
        private_account=as_bool(user.get("privateAccount")),
        is_organization=(as_int(organization) == 1) if organization is not None else None,
        language=as_str(user.get("language")),
        create_time=from_unix_seconds(user.get("createTime")),
        tt_seller=as_bool(user.get("ttSeller")),
        duet_setting=as_int(user.get("duetSetting")),
        stitch_setting=as_int(user.get("stitchSetting")),
        download_setting=as_int(user.get("downloadSetting")),
    )
    return SocialMediaAccount(
        platform=SocialPlatform.TIKTOK,
        platform_user_id=user_id,
        username=as_str(user.get("uniqueId")) or "",
        display_name=as_str(user.get("nickname")),
        bio=as_str(user.get("signature")),
        profile_pic_url=as_str(user.get("avatarMedium")),
        profile_pic_url_hd=as_str(user.get("avatarLarger")),
        external_url=None,
        follower_count=count(stats.get("followerCount")),
        following_count=count(stats.get("followingCount")),
        is_verified=as_bool(user.get("verified")) or False,
        is_business_account=bool(commerce and commerce.commerce_user),
        platform_data=platform_data,
    )


def _address(video: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        url = first_url(as_mapping(video.get(key)).get("url_list"))
        if url:
            return url
    return None


def normalize_tiktok_post(item: Mapping[str, Any]) -> TiktokPost:
    """Map one ``aweme_list`` entry from ``v3/tiktok/profile/videos``."""
    aweme_id = as_str(item.get("aweme_id"))
    if not aweme_id:
        raise NormalizationError("TikTok post is missing its aweme_id")

    video = as_mapping(item.get("video"))
    stats = as_mapping(item.get("statistics"))
    video_url = _address(video, "download_addr", "play_addr")
    thumbnail_url = _address(video, "cover", "origin_cover")
    width = as_int(video.get("width"))
    height = as_int(video.get("height"))

    media_urls: List[PostMedia] = []
    if video_url:
        media_urls.append(PostMedia(url=video_url, type="video", width=width, height=height))
        if thumbnail_url:
            media_urls.append(PostMedia(url=thumbnail_url, type="image"))

    return TiktokPost(
        platform_post_id=aweme_id,
        shortcode=aweme_id,
        caption=as_str(item.get("desc")),
        post_url=as_str(item.get("url")),
        thumbnail_url=thumbnail_url,
        video_url=video_url,
        play_count=counter(stats.get("play_count")),
        like_count=counter(stats.get("digg_count")),
        comment_count=counter(stats.get("comment_count")),
        share_count=counter(stats.get("share_count")),
        collect_count=count(stats.get("collect_count")),
        video_duration=millis_to_seconds(video.get("duration")),
        video_width=width,
        video_height=height,
        taken_at=from_unix_seconds(item.get("create_time")),
        region=as_str(item.get("region")),
        desc_language=as_str(item.get("desc_language")),
        media_urls=media_urls,
    )


def normalize_tiktok_posts_page(payload: Mapping[str, Any]) -> Tuple[List[TiktokPost], PaginationState]:
    items = payload.get("aweme_list")
    if not isinstance(items, list):
        raise NormalizationError(POSTS_UNAVAILABLE)
    posts = [normalize_tiktok_post(item) for item in items_with_id(items, "aweme_id", platform="tiktok")]
    state = PaginationState.from_flagged_cursor(payload.get("has_more"), payload.get("max_cursor"))
    return posts, state


class TikTokScraper:
    def __init__(self, client: ScrapeCreatorClient) -> None:
        self._client = client

    async def scrape_profile(self, handle_or_url: str) -> ScrapingResult[SocialMediaAccount]:
        scraped_at = utc_now()
        result = ScrapingResult[SocialMediaAccount]
        handle = extract_tiktok_handle(handle_or_url)
        if not handle:
            return result.fail(INVALID_HANDLE, scraped_at)
        try:
            payload = await self._client.tiktok_profile(handle)
            account = normalize_tiktok_profile(payload)
        except NormalizationError:
            return result.fail(PROFILE_UNAVAILABLE, scraped_at)
        except Exception as exc:
            logger.warning("TikTok profile scrape failed for @%s: %s", handle, exc)
            return result.fail(f"Failed to scrape TikTok profile: {exc}", scraped_at)
        return result.ok(account, scraped_at)

    async def scrape_posts(
        self, handle_or_url: str, cursor: Optional[Union[str, int]] = None
    ) -> PostsScrapingResult[TiktokPost]:
        scraped_at = utc_now()
        result = PostsScrapingResult[TiktokPost]
        handle = extract_tiktok_handle(handle_or_url)
        if not handle:
            return result.fail(INVALID_HANDLE, scraped_at)
        try:
            payload = await self._client.tiktok_posts(handle, cursor)
            posts, state = normalize_tiktok_posts_page(payload)
        except NormalizationError:
            return result.fail(POSTS_UNAVAILABLE, scraped_at)
        except Exception as exc:
            logger.warning("TikTok posts scrape failed for @%s: %s", handle, exc)
            return result.fail(f"Failed to scrape TikTok posts: {exc}", scraped_at)
        logger.info(
            "Fetched %d TikTok posts for @%s",
            len(posts),
            handle,
            extra={
                "event": "tiktok.posts_page",
                "extra_fields": {"handle": handle, "count": len(posts), "has_more": state.has_more},
            },
        )
        return result.ok(posts, scraped_at, has_more=state.has_more, next_cursor=state.cursor)
