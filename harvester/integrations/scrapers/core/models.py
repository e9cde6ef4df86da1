from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, model_validator

DataT = TypeVar("DataT")
PostT = TypeVar("PostT")

MediaKind = Literal["image", "video"]
InstagramMediaType = Literal["image", "video", "carousel"]
InstagramProductType = Literal["clips", "feed"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SocialPlatform(str, Enum):
    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    TIKTOK = "tiktok"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    YOUTUBE = "youtube"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# --------------------------------------------------------------------------- #
# Platform extension payloads (discriminated on ``platform``)
# --------------------------------------------------------------------------- #


class InstagramBusinessAddress(_Record):
    city_name: Optional[str] = None
    city_id: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    street_address: Optional[str] = None
    zip_code: Optional[str] = None


class InstagramBioLink(_Record):
    url: str
    title: Optional[str] = None
    lynx_url: Optional[str] = None
    link_type: Optional[str] = None


class InstagramPlatformData(_Record):
    platform: Literal["instagram"] = "instagram"
    fbid: Optional[str] = None
    category_name: Optional[str] = None
    business_address: Optional[InstagramBusinessAddress] = None
    bio_links: List[InstagramBioLink] = Field(default_factory=list)
    posts_count: Optional[NonNegativeInt] = None
    reels_count: Optional[NonNegativeInt] = None
    is_private: Optional[bool] = None
    is_professional_account: Optional[bool] = None
    profile_pic_url_hd: Optional[str] = None


class TikTokCommerceUserInfo(_Record):
    commerce_user: Optional[bool] = None
    category: Optional[str] = None
    category_button: Optional[bool] = None


class TikTokProfileTab(_Record):
    show_music_tab: Optional[bool] = None
    show_question_tab: Optional[bool] = None
    show_playlist_tab: Optional[bool] = None


class TikTokPlatformData(_Record):
    platform: Literal["tiktok"] = "tiktok"
    short_id: Optional[str] = None
    sec_uid: Optional[str] = None
    heart_count: Optional[NonNegativeInt] = None
    video_count: Optional[NonNegativeInt] = None
    digg_count: Optional[NonNegativeInt] = None
    friend_count: Optional[NonNegativeInt] = None
    commerce_user_info: Optional[TikTokCommerceUserInfo] = None
    profile_tab: Optional[TikTokProfileTab] = None
    private_account: Optional[bool] = None
    is_organization: Optional[bool] = None
    language: Optional[str] = None
    create_time: Optional[datetime] = None
    tt_seller: Optional[bool] = None
    duet_setting: Optional[int] = None
    stitch_setting: Optional[int] = None
    download_setting: Optional[int] = None


class FacebookCoverPhoto(_Record):
    id: Optional[str] = None
    url: Optional[str] = None
    image_uri: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    focus_x: Optional[float] = None
    focus_y: Optional[float] = None


class FacebookAdLibrary(_Record):
    ad_status: Optional[str] = None
    page_id: Optional[str] = None


class FacebookPlatformData(_Record):
    platform: Literal["facebook"] = "facebook"
    page_url: Optional[str] = None
    page_intro: Optional[str] = None
    category: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    price_range: Optional[str] = None
    creation_date: Optional[str] = None
    gender: Optional[str] = None
    like_count: Optional[NonNegativeInt] = None
    rating_count: Optional[NonNegativeInt] = None
    is_business_page_active: Optional[bool] = None
    cover_photo: Optional[FacebookCoverPhoto] = None
    ad_library: Optional[FacebookAdLibrary] = None
    links: List[str] = Field(default_factory=list)


class YouTubeAvatarSource(_Record):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class YouTubePlatformData(_Record):
    """Channel metadata; kept so persisted YouTube rows validate against the union."""

    platform: Literal["youtube"] = "youtube"
    channel_id: Optional[str] = None
    handle: Optional[str] = None
    channel_url: Optional[str] = None
    subscriber_count: Optional[NonNegativeInt] = None
    video_count: Optional[NonNegativeInt] = None
    view_count: Optional[NonNegativeInt] = None
    joined_date: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    email: Optional[str] = None
    avatar_sources: List[YouTubeAvatarSource] = Field(default_factory=list)
    links: List[str] = Field(default_factory=list)


PlatformData = Annotated[
    Union[InstagramPlatformData, TikTokPlatformData, FacebookPlatformData, YouTubePlatformData],
    Field(discriminator="platform"),
]


# --------------------------------------------------------------------------- #
# Accounts and posts
# --------------------------------------------------------------------------- #


class SocialMediaAccount(_Record):
    """A profile as seen at scrape time; callers persist or diff, never mutate."""

    platform: SocialPlatform
    platform_user_id: str = Field(min_length=1)
    username: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    profile_pic_url: Optional[str] = None
    profile_pic_url_hd: Optional[str] = None
    external_url: Optional[str] = None
    follower_count: Optional[NonNegativeInt] = None
    following_count: Optional[NonNegativeInt] = None
    is_verified: bool = False
    is_business_account: bool = False
    platform_data: Optional[PlatformData] = None

    @model_validator(mode="after")
    def _platform_matches_payload(self) -> "SocialMediaAccount":
        if self.platform_data is not None and self.platform_data.platform != self.platform.value:
            raise ValueError(
                f"platform_data is for {self.platform_data.platform!r} but account is {self.platform.value!r}"
            )
        return self


class PostMedia(_Record):
    url: str
    type: MediaKind
    width: Optional[int] = None
    height: Optional[int] = None
    original_url: Optional[str] = None


class InstagramPost(_Record):
    platform_post_id: str = Field(min_length=1)
    shortcode: str
    media_type: InstagramMediaType = "image"
    product_type: Optional[InstagramProductType] = None
    caption: Optional[str] = None
    post_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    original_thumbnail_url: Optional[str] = None
    play_count: NonNegativeInt = 0
    like_count: NonNegativeInt = 0
    comment_count: NonNegativeInt = 0
    video_duration: Optional[float] = Field(default=None, ge=0, description="Duration in seconds")
    has_audio: Optional[bool] = None
    taken_at: Optional[datetime] = None
    media_urls: List[PostMedia] = Field(default_factory=list)


class TiktokPost(_Record):
    platform_post_id: str = Field(min_length=1)
    shortcode: str
    caption: Optional[str] = None
    post_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    original_thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    original_video_url: Optional[str] = None
    play_count: NonNegativeInt = 0
    like_count: NonNegativeInt = 0
    comment_count: NonNegativeInt = 0
    share_count: NonNegativeInt = 0
    collect_count: Optional[NonNegativeInt] = None
    video_duration: Optional[float] = Field(default=None, ge=0, description="Duration in seconds")
    video_width: Optional[int] = None
    video_height: Optional[int] = None
    taken_at: Optional[datetime] = None
    region: Optional[str] = None
    desc_language: Optional[str] = None
    media_urls: List[PostMedia] = Field(default_factory=list)


class MediaAsset(_Record):
    """One remote asset after it has been persisted to durable storage."""

    source_url: str
    detected_content_type: str
    destination_path: str
    final_content_type: str
    public_url: str

    @property
    def transcoded(self) -> bool:
        return self.final_content_type != self.detected_content_type


# --------------------------------------------------------------------------- #
# Result envelopes
# --------------------------------------------------------------------------- #


class ScrapingResult(BaseModel, Generic[DataT]):
    """Uniform success/data/error envelope returned by every ingestion entry point."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Optional[DataT] = None
    error: Optional[str] = None
    scraped_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "ScrapingResult[DataT]":
        if self.success:
            if self.data is None:
                raise ValueError("successful result requires data")
            if self.error is not None:
                raise ValueError("successful result cannot carry an error")
        else:
            if not self.error:
                raise ValueError("failed result requires a non-empty error")
            if self.data is not None:
                raise ValueError("failed result cannot carry data")
        return self

    @classmethod
    def ok(cls, data: DataT, scraped_at: datetime, **extra):
        return cls(success=True, data=data, scraped_at=scraped_at, **extra)

    @classmethod
    def fail(cls, error: str, scraped_at: datetime, **extra):
        return cls(success=False, error=error, scraped_at=scraped_at, **extra)


class PostsScrapingResult(ScrapingResult[List[PostT]], Generic[PostT]):
    """Envelope for one page of posts plus the vendor's continuation signal."""

    has_more: bool = False
    next_cursor: Optional[Union[str, int]] = None


class WebsiteScrapingResult(ScrapingResult[str]):
    url: Optional[str] = None
