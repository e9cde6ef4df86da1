"""Facebook page ingestion via ScrapeCreator."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from ..clients.scrapecreator import ScrapeCreatorClient
from ..core.errors import NormalizationError
from ..core.handles import build_facebook_url, extract_facebook_handle
from ..core.models import (
    FacebookAdLibrary,
    FacebookCoverPhoto,
    FacebookPlatformData,
    ScrapingResult,
    SocialMediaAccount,
    SocialPlatform,
    utc_now,
)
from .common import as_bool, as_float, as_int, as_list, as_mapping, as_str, count

logger = logging.getLogger(__name__)

INVALID_HANDLE = "Invalid Facebook handle or URL"
PAGE_UNAVAILABLE = "Failed to retrieve Facebook page data"


def _cover_photo(raw: Any) -> Optional[FacebookCoverPhoto]:
    if not isinstance(raw, Mapping):
        return None
    photo = as_mapping(raw.get("photo"))
    image = as_mapping(photo.get("image"))
    focus = as_mapping(raw.get("focus"))
    return FacebookCoverPhoto(
        id=as_str(photo.get("id")),
        url=as_str(photo.get("url")),
        image_uri=as_str(image.get("uri")),
        width=as_int(image.get("width")),
        height=as_int(image.get("height")),
        focus_x=as_float(focus.get("x")),
        focus_y=as_float(focus.get("y")),
    )


def _ad_library(raw: Any) -> Optional[FacebookAdLibrary]:
    if not isinstance(raw, Mapping):
        return None
    return FacebookAdLibrary(ad_status=as_str(raw.get("adStatus")), page_id=as_str(raw.get("pageId")))


def _links(raw: Any) -> List[str]:
    return [link for link in (as_str(value) for value in as_list(raw)) if link]


def normalize_facebook_page(payload: Mapping[str, Any]) -> SocialMediaAccount:
    """Map a ``v1/facebook/profile`` body. Pages expose no following count or verification flag."""
    page_id = as_str(payload.get("id"))
    if not page_id:
        raise NormalizationError(PAGE_UNAVAILABLE)

    page_url = as_str(payload.get("url"))
    website = as_str(payload.get("website"))
    platform_data = FacebookPlatformData(
        page_url=page_url,
        page_intro=as_str(payload.get("pageIntro")),
        category=as_str(payload.get("category")),
        address=as_str(payload.get("address")),
        email=as_str(payload.get("email")),
        phone=as_str(payload.get("phone")),
        website=website,
        price_range=as_str(payload.get("priceRange")),
        creation_date=as_str(payload.get("creationDate")),
        gender=as_str(payload.get("gender")),
        like_count=count(payload.get("likeCount")),
        rating_count=count(payload.get("ratingCount")),
        is_business_page_active=as_bool(payload.get("isBusinessPageActive")),
        cover_photo=_cover_photo(payload.get("coverPhoto")),
        ad_library=_ad_library(payload.get("adLibrary")),
        links=_links(payload.get("links")),
    )
    return SocialMediaAccount(
        platform=SocialPlatform.FACEBOOK,
        platform_user_id=page_id,
        username=extract_facebook_handle(page_url) or page_id,
        display_name=as_str(payload.get("name")),
        bio=as_str(payload.get("pageIntro")),
        profile_pic_url=as_str(payload.get("profilePicMedium")),
        profile_pic_url_hd=as_str(payload.get("profilePicLarge")),
        external_url=website,
        follower_count=count(payload.get("followerCount")),
        following_count=None,
        is_verified=False,
        is_business_account=as_bool(payload.get("isBusinessPageActive")) or False,
        platform_data=platform_data,
    )


class FacebookScraper:
    def __init__(self, client: ScrapeCreatorClient) -> None:
        self._client = client

    async def scrape_profile(self, handle_or_url: str) -> ScrapingResult[SocialMediaAccount]:
        scraped_at = utc_now()
        result = ScrapingResult[SocialMediaAccount]
        if not handle_or_url or not handle_or_url.strip():
            return result.fail(INVALID_HANDLE, scraped_at)
        page_url = build_facebook_url(handle_or_url)
        try:
            payload = await self._client.facebook_profile(page_url)
            account = normalize_facebook_page(payload)
        except NormalizationError:
            return result.fail(PAGE_UNAVAILABLE, scraped_at)
        except Exception as exc:
            logger.warning("Facebook page scrape failed for %s: %s", page_url, exc)
            return result.fail(f"Failed to scrape Facebook page: {exc}", scraped_at)
        return result.ok(account, scraped_at)
