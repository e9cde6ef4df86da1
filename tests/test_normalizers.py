from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx
import pytest
from pydantic import ValidationError

from harvester.integrations.scrapers.clients.scrapecreator import ScrapeCreatorClient
from harvester.integrations.scrapers.core.errors import NormalizationError, VendorHTTPError
from harvester.integrations.scrapers.core.models import (
    SocialMediaAccount,
    SocialPlatform,
    TikTokPlatformData,
)
from harvester.integrations.scrapers.platforms.common import counter, millis_to_seconds, select_image, select_video
from harvester.integrations.scrapers.platforms.facebook import FacebookScraper, normalize_facebook_page
from harvester.integrations.scrapers.platforms.instagram import (
    InstagramScraper,
    map_media_type,
    map_product_type,
    normalize_instagram_post,
    normalize_instagram_posts_page,
    normalize_instagram_profile,
)
from harvester.integrations.scrapers.platforms.tiktok import (
    TikTokScraper,
    normalize_tiktok_post,
    normalize_tiktok_posts_page,
    normalize_tiktok_profile,
)


class StubScrapeCreator:
    """Returns canned payloads (or raises) in place of the HTTP client."""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = []

    async def _answer(self, name, *args):
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error
        return self.payload

    async def instagram_profile(self, handle):
        return await self._answer("instagram_profile", handle)

    async def instagram_posts(self, handle, cursor=None):
        return await self._answer("instagram_posts", handle, cursor)

    async def tiktok_profile(self, handle):
        return await self._answer("tiktok_profile", handle)

    async def tiktok_posts(self, handle, cursor=None):
        return await self._answer("tiktok_posts", handle, cursor)

    async def facebook_profile(self, page_url):
        return await self._answer("facebook_profile", page_url)


def _instagram_item(**overrides):
    item = {
        "id": "3210_99",
        "code": "CxYz123",
        "media_type": 1,
        "product_type": "feed",
        "caption": {"text": "Sunset"},
        "url": "https://www.instagram.com/p/CxYz123/",
        "like_count": 42,
        "comment_count": 3,
        "taken_at": 1700000000,
        "image_versions2": {
            "candidates": [
                {"url": "https://cdn.example/img_640.jpg", "width": 640, "height": 640},
                {"url": "https://cdn.example/img_1080.jpg", "width": 1080, "height": 1080},
                {"url": "https://cdn.example/img_1440.jpg", "width": 1440, "height": 1440},
            ]
        },
    }
    item.update(overrides)
    return item


def _tiktok_item(**overrides):
    item = {
        "aweme_id": "7234567890",
        "desc": "dance",
        "create_time": 1700000000,
        "region": "US",
        "desc_language": "en",
        "statistics": {"play_count": 1000, "digg_count": 50, "comment_count": 5, "share_count": 2},
        "video": {
            "duration": 15000,
            "width": 720,
            "height": 1280,
            "download_addr": {"url_list": ["https://v.example/download.mp4"]},
            "play_addr": {"url_list": ["https://v.example/play.mp4"]},
            "cover": {"url_list": ["https://p.example/cover.jpeg"]},
            "origin_cover": {"url_list": ["https://p.example/origin.jpeg"]},
        },
    }
    item.update(overrides)
    return item


@pytest.mark.parametrize(
    ("code", "expected"),
    [(1, "image"), (2, "video"), (8, "carousel"), ("2", "video"), (99, "image"), (None, "image"), ("x", "image")],
)
def test_map_media_type(code, expected):
    assert map_media_type(code) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [("clips", "clips"), ("feed", "feed"), ("carousel_container", None), (None, None), (["clips"], None)],
)
def test_map_product_type(value, expected):
    assert map_product_type(value) == expected


def test_select_image_prefers_width_closest_to_1080():
    media = select_image(
        [
            {"url": "small", "width": 320},
            {"url": "large", "width": 1440},
            {"url": "target", "width": 1080, "height": 1350},
        ]
    )
    assert media.url == "target"
    assert media.type == "image"
    assert media.height == 1350


def test_select_image_keeps_first_on_tie():
    assert select_image([{"url": "first", "width": 1000}, {"url": "second", "width": 1160}]).url == "first"


def test_select_image_ignores_entries_without_url():
    assert select_image([{"width": 1080}, {"url": "only", "width": 10}]).url == "only"
    assert select_image([]) is None
    assert select_image(None) is None


def test_select_video_prefers_tallest_and_first_on_tie():
    media = select_video(
        [
            {"url": "sd", "height": 640, "width": 360},
            {"url": "hd-a", "height": 1280, "width": 720},
            {"url": "hd-b", "height": 1280, "width": 720},
        ]
    )
    assert media.url == "hd-a"
    assert media.type == "video"


@pytest.mark.parametrize(("value", "expected"), [(None, 0), (-5, 0), ("12", 12), (7, 7), (True, 0), ("n/a", 0)])
def test_counter_defaults_to_zero(value, expected):
    assert counter(value) == expected


@pytest.mark.parametrize(("value", "expected"), [(15000, 15.0), (0, 0.0), (None, None), (-1, None), (1500, 1.5)])
def test_millis_to_seconds(value, expected):
    assert millis_to_seconds(value) == expected


def test_instagram_image_post():
    post = normalize_instagram_post(_instagram_item())

    assert post.platform_post_id == "3210_99"
    assert post.shortcode == "CxYz123"
    assert post.media_type == "image"
    assert post.product_type == "feed"
    assert post.caption == "Sunset"
    assert [media.url for media in post.media_urls] == ["https://cdn.example/img_1080.jpg"]
    assert post.thumbnail_url == "https://cdn.example/img_1080.jpg"
    assert post.taken_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert post.play_count == 0
    assert post.like_count == 42


def test_instagram_video_post_appends_poster_frame():
    post = normalize_instagram_post(
        _instagram_item(
            media_type=2,
            product_type="clips",
            video_duration=12.5,
            ig_play_count=900,
            display_uri="https://cdn.example/display.jpg",
            video_versions=[
                {"url": "https://cdn.example/v_480.mp4", "height": 852, "width": 480},
                {"url": "https://cdn.example/v_720.mp4", "height": 1280, "width": 720},
            ],
        )
    )

    assert post.media_type == "video"
    assert [(media.type, media.url) for media in post.media_urls] == [
        ("video", "https://cdn.example/v_720.mp4"),
        ("image", "https://cdn.example/img_1080.jpg"),
    ]
    assert post.thumbnail_url == "https://cdn.example/display.jpg"
    assert post.play_count == 900
    assert post.video_duration == 12.5


def test_instagram_video_without_playable_variant_has_no_media():
    post = normalize_instagram_post(_instagram_item(media_type=2))

    assert post.media_type == "video"
    assert post.media_urls == []
    assert post.thumbnail_url == "https://cdn.example/img_1080.jpg"


def test_instagram_post_missing_fields_fall_back():
    post = normalize_instagram_post({"id": "55", "like_count": -3})

    assert post.shortcode == "55"
    assert post.media_urls == []
    assert post.thumbnail_url is None
    assert post.like_count == 0
    assert post.taken_at is None


def test_instagram_post_without_id_is_rejected():
    with pytest.raises(NormalizationError):
        normalize_instagram_post({"code": "abc"})


def test_instagram_profile():
    payload = {
        "success": True,
        "data": {
            "user": {
                "id": "787132",
                "username": "natgeo",
                "full_name": "National Geographic",
                "biography": "Experience the world",
                "external_url": "https://natgeo.com",
                "profile_pic_url": "https://cdn.example/pic.jpg",
                "profile_pic_url_hd": "https://cdn.example/pic_hd.jpg",
                "edge_followed_by": {"count": 280000000},
                "edge_follow": {"count": 150},
                "edge_owner_to_timeline_media": {"count": 30000},
                "is_verified": True,
                "is_business_account": True,
                "category_name": "Media",
                "bio_links": [{"url": "https://natgeo.com", "title": "Site"}, {"title": "no url"}],
                "business_address_json": {"city_name": "Washington", "latitude": "38.9"},
            }
        },
    }

    account = normalize_instagram_profile(payload)

    assert account.platform is SocialPlatform.INSTAGRAM
    assert account.platform_user_id == "787132"
    assert account.username == "natgeo"
    assert account.follower_count == 280000000
    assert account.following_count == 150
    assert account.is_verified is True
    assert account.platform_data.platform == "instagram"
    assert account.platform_data.posts_count == 30000
    assert [link.url for link in account.platform_data.bio_links] == ["https://natgeo.com"]
    assert account.platform_data.business_address.latitude == 38.9


def test_instagram_profile_without_id_is_rejected():
    with pytest.raises(NormalizationError):
        normalize_instagram_profile({"data": {"user": {"username": "ghost"}}})


def test_tiktok_post():
    post = normalize_tiktok_post(_tiktok_item())

    assert post.platform_post_id == "7234567890"
    assert post.shortcode == "7234567890"
    assert post.video_url == "https://v.example/download.mp4"
    assert post.thumbnail_url == "https://p.example/cover.jpeg"
    assert [(media.type, media.url) for media in post.media_urls] == [
        ("video", "https://v.example/download.mp4"),
        ("image", "https://p.example/cover.jpeg"),
    ]
    assert post.video_duration == 15.0
    assert post.like_count == 50
    assert post.collect_count is None
    assert post.region == "US"


def test_tiktok_post_address_fallbacks():
    video = {
        "duration": 0,
        "download_addr": {"url_list": []},
        "play_addr": {"url_list": ["https://v.example/play.mp4"]},
        "origin_cover": {"url_list": ["https://p.example/origin.jpeg"]},
    }
    post = normalize_tiktok_post(_tiktok_item(video=video, statistics={}))

    assert post.video_url == "https://v.example/play.mp4"
    assert post.thumbnail_url == "https://p.example/origin.jpeg"
    assert post.video_duration == 0.0
    assert post.play_count == 0
    assert post.share_count == 0


def test_tiktok_post_without_video_keeps_thumbnail():
    post = normalize_tiktok_post(_tiktok_item(video={"cover": {"url_list": ["https://p.example/cover.jpeg"]}}))

    assert post.media_urls == []
    assert post.thumbnail_url == "https://p.example/cover.jpeg"
    assert post.video_duration is None


def test_tiktok_profile():
    payload = {
        "user": {
            "id": "6745191554350760966",
            "uniqueId": "creator",
            "nickname": "Creator",
            "signature": "hi",
            "avatarMedium": "https://p.example/m.jpeg",
            "avatarLarger": "https://p.example/l.jpeg",
            "verified": True,
            "isOrganization": 1,
            "createTime": 1600000000,
            "commerceUserInfo": {"commerceUser": True, "category": "Media"},
        },
        "stats": {"followerCount": 10, "followingCount": 2, "heartCount": 100, "videoCount": 7},
    }

    account = normalize_tiktok_profile(payload)

    assert account.platform is SocialPlatform.TIKTOK
    assert account.username == "creator"
    assert account.profile_pic_url_hd == "https://p.example/l.jpeg"
    assert account.external_url is None
    assert account.is_business_account is True
    assert account.platform_data.is_organization is True
    assert account.platform_data.video_count == 7
    assert account.platform_data.create_time == datetime(2020, 9, 13, 12, 26, 40, tzinfo=timezone.utc)


def test_facebook_page():
    payload = {
        "id": "15087023444",
        "name": "Nike",
        "url": "https://www.facebook.com/nike",
        "website": "https://nike.com",
        "followerCount": 39000000,
        "likeCount": 38000000,
        "category": "Sportswear",
        "links": ["https://nike.com", None, ""],
        "coverPhoto": {"photo": {"id": "1", "image": {"uri": "https://cdn.example/cover.jpg", "width": 960}}},
    }

    account = normalize_facebook_page(payload)

    assert account.platform is SocialPlatform.FACEBOOK
    assert account.username == "nike"
    assert account.external_url == "https://nike.com"
    assert account.following_count is None
    assert account.is_verified is False
    assert account.platform_data.links == ["https://nike.com"]
    assert account.platform_data.cover_photo.image_uri == "https://cdn.example/cover.jpg"


def test_facebook_page_without_url_uses_page_id():
    assert normalize_facebook_page({"id": "15087023444"}).username == "15087023444"


def test_items_without_id_are_skipped_and_logged(caplog):
    payload = {"items": [_instagram_item(), {"code": "noid"}, "junk"], "more_available": False}

    with caplog.at_level(logging.WARNING):
        posts, state = normalize_instagram_posts_page(payload)

    assert [post.platform_post_id for post in posts] == ["3210_99"]
    assert state.has_more is False
    skipped = [record for record in caplog.records if getattr(record, "event", None) == "normalize.item_skipped"]
    assert len(skipped) == 2


def test_tiktok_page_cursor_is_kept_verbatim():
    posts, state = normalize_tiktok_posts_page({"aweme_list": [_tiktok_item()], "has_more": 1, "max_cursor": 1699999999000})

    assert len(posts) == 1
    assert state.has_more is True
    assert state.cursor == 1699999999000


def test_platform_data_must_match_account_platform():
    with pytest.raises(ValidationError):
        SocialMediaAccount(
            platform=SocialPlatform.INSTAGRAM,
            platform_user_id="1",
            username="someone",
            platform_data=TikTokPlatformData(),
        )


async def test_instagram_scraper_rejects_invalid_handle_without_calling_vendor():
    client = StubScrapeCreator(payload={})

    result = await InstagramScraper(client).scrape_profile("https://www.instagram.com/p/CxYz123/")

    assert result.success is False
    assert result.error == "Invalid Instagram handle or URL"
    assert client.calls == []


async def test_instagram_scraper_reports_unsuccessful_vendor_body(make_transport, vendor_policy, recording_sleep):
    transport = make_transport(lambda request: httpx.Response(200, json={"success": False, "message": "nope"}))
    client = ScrapeCreatorClient(transport.client(), vendor_policy, api_key="k", sleep=recording_sleep)

    result = await InstagramScraper(client).scrape_profile("natgeo")

    assert result.success is False
    assert result.data is None
    assert result.error == "Failed to scrape Instagram profile: ScrapeCreator API returned unsuccessful response"


async def test_instagram_scraper_missing_user_is_unavailable():
    result = await InstagramScraper(StubScrapeCreator(payload={"data": {}})).scrape_profile("natgeo")

    assert result.error == "Failed to retrieve Instagram profile data"


async def test_instagram_posts_page_envelope():
    client = StubScrapeCreator(payload={"items": [_instagram_item()], "more_available": True, "next_max_id": "QVFE"})

    result = await InstagramScraper(client).scrape_posts("@natgeo", cursor="prev")

    assert result.success is True
    assert result.has_more is True
    assert result.next_cursor == "QVFE"
    assert client.calls == [("instagram_posts", ("natgeo", "prev"))]


async def test_instagram_posts_without_token_has_no_more():
    client = StubScrapeCreator(payload={"items": [_instagram_item()], "more_available": True})

    result = await InstagramScraper(client).scrape_posts("natgeo")

    assert result.has_more is False
    assert result.next_cursor is None


async def test_tiktok_posts_envelope_and_vendor_error():
    ok = await TikTokScraper(
        StubScrapeCreator(payload={"aweme_list": [_tiktok_item()], "has_more": 0, "max_cursor": 123})
    ).scrape_posts("@creator")
    assert ok.success is True
    assert ok.has_more is False
    assert ok.next_cursor is None

    failed = await TikTokScraper(StubScrapeCreator(error=VendorHTTPError("ScrapeCreator", 500))).scrape_posts("creator")
    assert failed.success is False
    assert failed.error == "Failed to scrape TikTok posts: ScrapeCreator request failed with HTTP 500"


async def test_tiktok_posts_without_list_is_unavailable():
    result = await TikTokScraper(StubScrapeCreator(payload={"success": True})).scrape_posts("creator")

    assert result.error == "Failed to retrieve TikTok posts data"


async def test_facebook_scraper_builds_page_url():
    client = StubScrapeCreator(payload={"id": "1", "url": "https://www.facebook.com/nike"})

    result = await FacebookScraper(client).scrape_profile("nike")

    assert result.success is True
    assert client.calls == [("facebook_profile", ("https://www.facebook.com/nike/",))]


async def test_facebook_scraper_rejects_blank_input():
    result = await FacebookScraper(StubScrapeCreator()).scrape_profile("  ")

    assert result.error == "Invalid Facebook handle or URL"
