"""Exception hierarchy for the ingestion pipeline.

Low-level primitives (vendor clients, media downloader, storage) raise these.
Platform scrapers catch them at their public entry points and convert them
into a :class:`~harvester.integrations.scrapers.core.models.ScrapingResult`.
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for every error raised inside the ingestion boundary."""


class VendorError(IngestionError):
    """A scraping vendor request did not yield usable data."""

    def __init__(self, vendor: str, message: str) -> None:
        super().__init__(message)
        self.vendor = vendor


class VendorHTTPError(VendorError):
    """The vendor answered with a non-success HTTP status."""

    def __init__(self, vendor: str, status_code: int, reason: str | None = None) -> None:
        detail = f"{vendor} request failed with HTTP {status_code}"
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(vendor, detail)
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class VendorTimeoutError(VendorError):
    """The vendor did not answer within the per-call timeout."""


class VendorRequestError(VendorError):
    """Transport-level failure (DNS, connection reset, TLS...)."""


class VendorResponseError(VendorError):
    """Transport succeeded but the payload is a logical failure."""


class InvalidUrlError(IngestionError, ValueError):
    """User input cannot be normalized into an absolute web URL."""


class UnsafeUrlError(IngestionError):
    """Target URL points at an internal or otherwise forbidden destination."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NormalizationError(IngestionError, ValueError):
    """Vendor payload lacks a mandatory field of the domain model."""


class MediaFetchError(IngestionError):
    """Remote media could not be retrieved."""

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool = True) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class StorageError(IngestionError):
    """Durable storage rejected an upload."""
