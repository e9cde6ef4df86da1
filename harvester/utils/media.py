"""Image transcoding utilities built around Pillow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO

import pillow_heif
from PIL import Image

logger = logging.getLogger(__name__)

WEBP_CONTENT_TYPE = "image/webp"
DEFAULT_WEBP_QUALITY = 85
HEIC_JPEG_QUALITY = 85

HEIC_CONTENT_TYPES = frozenset({"image/heic", "image/heif", "image/heic-sequence", "image/heif-sequence"})
AVIF_CONTENT_TYPES = frozenset({"image/avif"})

MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heif",
    "image/avif": "avif",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "application/pdf": "pdf",
}

EXTENSION_CONTENT_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
    "avif": "image/avif",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "pdf": "application/pdf",
}


@dataclass(slots=True)
class UploadAsset:
    """Bytes ready for durable storage plus the content type they are stored under."""

    data: bytes
    content_type: str
    transcoded: bool = False


@lru_cache(maxsize=1)
def _register_heif() -> None:
    pillow_heif.register_heif_opener()


def extension_for(content_type: str | None) -> str | None:
    if not content_type:
        return None
    return MIME_EXTENSIONS.get(content_type.lower())


def content_type_for_extension(extension: str | None) -> str | None:
    if not extension:
        return None
    return EXTENSION_CONTENT_TYPES.get(extension.lower().lstrip("."))


def needs_transcode(content_type: str | None) -> bool:
    return bool(content_type) and content_type.lower() in HEIC_CONTENT_TYPES | AVIF_CONTENT_TYPES


def _encode_webp(image: Image.Image, quality: int) -> bytes:
    if image.mode == "P":
        image = image.convert("RGBA")
    elif image.mode not in ("RGB", "RGBA", "L", "LA"):
        image = image.convert("RGB")
    output = BytesIO()
    image.save(output, format="WEBP", quality=quality, method=6)
    return output.getvalue()


def convert_heic_to_webp(data: bytes, quality: int = DEFAULT_WEBP_QUALITY) -> bytes:
    """HEIC/HEIF to WebP through a JPEG intermediate."""
    _register_heif()
    with Image.open(BytesIO(data)) as source:
        intermediate = BytesIO()
        source.convert("RGB").save(intermediate, format="JPEG", quality=HEIC_JPEG_QUALITY)
    intermediate.seek(0)
    with Image.open(intermediate) as jpeg:
        return _encode_webp(jpeg, quality)


def convert_to_webp(data: bytes, quality: int = DEFAULT_WEBP_QUALITY) -> bytes:
    """Any format Pillow can decode (AVIF included) to WebP."""
    with Image.open(BytesIO(data)) as source:
        source.load()
        return _encode_webp(source, quality)


def prepare_upload_asset(data: bytes, content_type: str, *, quality: int = DEFAULT_WEBP_QUALITY) -> UploadAsset:
    """Transcode browser-unfriendly images to WebP; other content passes through unchanged.

    A failed conversion is logged and the original bytes are kept, so the
    asset is still stored under its source content type.
    """
    base_type = (content_type or "").lower()
    if not needs_transcode(base_type):
        return UploadAsset(data=data, content_type=content_type)

    try:
        if base_type in HEIC_CONTENT_TYPES:
            converted = convert_heic_to_webp(data, quality)
        else:
            converted = convert_to_webp(data, quality)
    except Exception as exc:
        logger.warning(
            "Transcoding %s to WebP failed; storing original bytes: %s",
            base_type,
            exc,
            extra={
                "event": "media.transcode_failed",
                "extra_fields": {"content_type": base_type, "size": len(data)},
            },
        )
        return UploadAsset(data=data, content_type=content_type)

    logger.debug("Transcoded %s (%d bytes) to WebP (%d bytes)", base_type, len(data), len(converted))
    return UploadAsset(data=converted, content_type=WEBP_CONTENT_TYPE, transcoded=True)
