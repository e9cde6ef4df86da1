"""Instagram profile and post ingestion via ScrapeCreator."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Tuple

from ..clients.scrapecreator import ScrapeCreatorClient
from ..core.errors import NormalizationError
from ..core.handles import extract_instagram_handle
from ..core.models import (
    InstagramBioLink,
    InstagramBusinessAddress,
    InstagramMediaType,
    InstagramPlatformData,
    InstagramPost,
    InstagramProductType,
    PostMedia,
    PostsScrapingResult,
    ScrapingResult,
    SocialMediaAccount,
    SocialPlatform,
    utc_now,
)
from ..core.pagination import PaginationState
from .common import (
    as_bool,
    as_float,
    as_int,
    as_list,
    as_mapping,
    as_str,
    counter,
    edge_count,
    from_unix_seconds,
    items_with_id,
    seconds,
    select_image,
    select_video,
)

logger = logging.getLogger(__name__)

INVALID_HANDLE = "Invalid Instagram handle or URL"
PROFILE_UNAVAILABLE = "Failed to retrieve Instagram profile data"
POSTS_UNAVAILABLE = "Failed to retrieve Instagram posts data"

MEDIA_TYPES: dict[int, InstagramMediaType] = {1: "image", 2: "video", 8: "carousel"}
PRODUCT_TYPES: frozenset[str] = frozenset({"clips", "feed"})


def map_media_type(code: Any) -> InstagramMediaType:
    number = as_int(code)
    if number is None:
        return "image"
    return MEDIA_TYPES.get(number, "image")


def map_product_type(value: Any) -> Optional[InstagramProductType]:
    return value if isinstance(value, str) and value in PRODUCT_TYPES else None


def _business_address(raw: Any) -> Optional[InstagramBusinessAddress]:
    if not isinstance(raw, Mapping):
        return None
    return InstagramBusinessAddress(
        city_name=as_str(raw.get("city_name")),
        city_id=as_int(raw.get("city_id")),
        latitude=as_float(raw.get("latitude")),
        longitude=as_float(raw.get("longitude")),
        street_address=as_str(raw.get("street_address")),
        zip_code=as_str(raw.get("zip_code")),
    )


def _bio_links(raw: Any) -> List[InstagramBioLink]:
    links: List[InstagramBioLink] = []
    for entry in as_list(raw):
        entry = as_mapping(entry)
        url = as_str(entry.get("url"))
        if not url:
            continue
        links.append(
            InstagramBioLink(
                url=url,
                title=as_str(entry.get("title")),
                lynx_url=as_str(entry.get("lynx_url")),
                link_type=as_str(entry.get("link_type")),
            )
        )
    return links


def _profile_user(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    data = as_mapping(payload.get("data"))
    return as_mapping(data.get("user") or payload.get("user"))


def normalize_instagram_profile(payload: Mapping[str, Any]) -> SocialMediaAccount:
    """Map a ``v1/instagram/profile`` body onto :class:`SocialMediaAccount`."""
    user = _profile_user(payload)
    user_id = as_str(user.get("id"))
    if not user_id:
        raise NormalizationError(PROFILE_UNAVAILABLE)

    profile_pic_hd = as_str(user.get("profile_pic_url_hd"))
    platform_data = InstagramPlatformData(
        fbid=as_str(user.get("fbid")),
        category_name=as_str(user.get("category_name")),
        business_address=_business_address(user.get("business_address_json")),
        bio_links=_bio_links(user.get("bio_links")),
        posts_count=edge_count(user.get("edge_owner_to_timeline_media")),
        reels_count=edge_count(user.get("edge_felix_video_timeline")),
        is_private=as_bool(user.get("is_private")),
        is_professional_account=as_bool(user.get("is_professional_account")),
        profile_pic_url_hd=profile_pic_hd,
    )
    return SocialMediaAccount(
        platform=SocialPlatform.INSTAGRAM,
        platform_user_id=user_id,
        username=as_str(user.get("username")) or "",
        display_name=as_str(user.get("full_name")),
        bio=as_str(user.get("biography")),
        profile_pic_url=as_str(user.get("profile_pic_url")),
        profile_pic_url_hd=profile_pic_hd,
        external_url=as_str(user.get("external_url")),
        follower_count=edge_count(user.get("edge_followed_by")),
        following_count=edge_count(user.get("edge_follow")),
        is_verified=as_bool(user.get("is_verified")) or False,
        is_business_account=as_bool(user.get("is_business_account")) or False,
        platform_data=platform_data,
    )


def _post_media(item: Mapping[str, Any], media_type: InstagramMediaType, image: Optional[PostMedia]) -> List[PostMedia]:
    if media_type != "video":
        return [image] if image else []
    video = select_video(item.get("video_versions"))
    if video is None:
        return []
    return [video, image] if image else [video]


def normalize_instagram_post(item: Mapping[str, Any]) -> InstagramPost:
    """Map one entry of ``items`` from ``v2/instagram/user/posts``."""
    post_id = as_str(item.get("id"))
    if not post_id:
        raise NormalizationError("Instagram post is missing its id")

    media_type = map_media_type(item.get("media_type"))
    image = select_image(as_mapping(item.get("image_versions2")).get("candidates"))
    media_urls = _post_media(item, media_type, image)
    thumbnail = as_str(item.get("display_uri")) or (image.url if image else None)

    play_count = item.get("play_count")
    if play_count is None:
        play_count = item.get("ig_play_count")

    return InstagramPost(
        platform_post_id=post_id,
        shortcode=as_str(item.get("code")) or post_id,
        media_type=media_type,
        product_type=map_product_type(item.get("product_type")),
        caption=as_str(as_mapping(item.get("caption")).get("text")),
        post_url=as_str(item.get("url")),
        thumbnail_url=thumbnail,
        play_count=counter(play_count),
        like_count=counter(item.get("like_count")),
        comment_count=counter(item.get("comment_count")),
        video_duration=seconds(item.get("video_duration")),
        has_audio=as_bool(item.get("has_audio")),
        taken_at=from_unix_seconds(item.get("taken_at")),
        media_urls=media_urls,
    )


def normalize_instagram_posts_page(payload: Mapping[str, Any]) -> Tuple[List[InstagramPost], PaginationState]:
    items = payload.get("items")
    if not isinstance(items, list):
        raise NormalizationError(POSTS_UNAVAILABLE)
    posts = [normalize_instagram_post(item) for item in items_with_id(items, "id", platform="instagram")]
    state = PaginationState.from_token(payload.get("more_available"), payload.get("next_max_id"))
    return posts, state


class InstagramScraper:
    """Profile and post scraping entry points. Never raise; failures come back in the envelope."""

    def __init__(self, client: ScrapeCreatorClient) -> None:
        self._client = client

    async def scrape_profile(self, handle_or_url: str) -> ScrapingResult[SocialMediaAccount]:
        scraped_at = utc_now()
        result = ScrapingResult[SocialMediaAccount]
        handle = extract_instagram_handle(handle_or_url)
        if not handle:
            return result.fail(INVALID_HANDLE, scraped_at)
        try:
            payload = await self._client.instagram_profile(handle)
            account = normalize_instagram_profile(payload)
        except NormalizationError:
            return result.fail(PROFILE_UNAVAILABLE, scraped_at)
        except Exception as exc:
            logger.warning("Instagram profile scrape failed for @%s: %s", handle, exc)
            return result.fail(f"Failed to scrape Instagram profile: {exc}", scraped_at)
        return result.ok(account, scraped_at)

    async def scrape_posts(
        self, handle_or_url: str, cursor: Optional[str] = None
    ) -> PostsScrapingResult[InstagramPost]:
        scraped_at = utc_now()
        result = PostsScrapingResult[InstagramPost]
        handle = extract_instagram_handle(handle_or_url)
        if not handle:
            return result.fail(INVALID_HANDLE, scraped_at)
        try:
            payload = await self._client.instagram_posts(handle, cursor)
            posts, state = normalize_instagram_posts_page(payload)
        except NormalizationError:
            return result.fail(POSTS_UNAVAILABLE, scraped_at)
        except Exception as exc:
            logger.warning("Instagram posts scrape failed for @%s: %s", handle, exc)
            return result.fail(f"Failed to scrape Instagram posts: {exc}", scraped_at)
        logger.info(
            "Fetched %d Instagram posts for @%s",
            len(posts),
            handle,
            extra={
                "event": "instagram.posts_page",
                "extra_fields": {"handle": handle, "count": len(posts), "has_more": state.has_more},
            },
        )
        return result.ok(posts, scraped_at, has_more=state.has_more, next_cursor=state.cursor)
