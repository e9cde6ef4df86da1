"""Website content fetcher with URL normalization and SSRF guards."""

from __future__ import annotations

import ipaddress
import logging
import re
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

from ..clients.scrapingdog import ScrapingDogClient
from ..core.errors import InvalidUrlError, UnsafeUrlError
from ..core.models import WebsiteScrapingResult, utc_now

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

ALLOWED_SCHEMES = frozenset({"http", "https"})
METADATA_HOSTS = frozenset(
    {
        "metadata.google.internal",
        "metadata.goog",
        "169.254.169.254",
        "169.254.170.2",
        "fd00:ec2::254",
    }
)
LOCALHOST_NAMES = frozenset({"localhost", "0.0.0.0"})

PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "fc00::/7")
)
LINK_LOCAL_NETWORKS = tuple(ipaddress.ip_network(net) for net in ("169.254.0.0/16", "fe80::/10"))

HTTP_PREFIXES_RE = re.compile(r"^(?:https?://)+", re.IGNORECASE)
SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):(//)?")
ENCODED_CONTROL_RE = re.compile(r"%(?:00|0d|0a)", re.IGNORECASE)

NO_CONTENT = "No content retrieved from website"


def _explicit_scheme(value: str) -> Optional[str]:
    """Scheme of ``value`` if it has one; ``host:port`` forms do not count."""
    match = SCHEME_RE.match(value)
    if not match:
        return None
    if match.group(2):
        return match.group(1)
    remainder = value[match.end():]
    if remainder[:1].isdigit():
        return None
    return match.group(1)


def normalize_url(raw: str) -> str:
    """Canonical absolute URL for ``raw``; idempotent.

    Repeated ``http(s)://`` prefixes collapse to the last one and a bare host
    gets ``https://``. Other explicit schemes are kept as-is so that
    :func:`check_url_safety` can reject them.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise InvalidUrlError("Invalid URL: empty input")

    prefixes = HTTP_PREFIXES_RE.match(trimmed)
    if prefixes:
        scheme = re.findall(r"https?", prefixes.group(0), re.IGNORECASE)[-1].lower()
        rest = trimmed[prefixes.end():]
    else:
        explicit = _explicit_scheme(trimmed)
        if explicit is not None:
            return explicit.lower() + trimmed[len(explicit):]
        scheme, rest = "https", trimmed

    try:
        parts = urlsplit(f"{scheme}://{rest}")
        host = parts.hostname
        port = parts.port
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid URL: {raw}") from exc
    if not host:
        raise InvalidUrlError(f"Invalid URL: {raw}")

    netloc = f"[{host}]" if ":" in host else host
    if port is not None:
        netloc = f"{netloc}:{port}"
    if parts.username is not None or parts.password is not None:
        userinfo = parts.netloc.rpartition("@")[0]
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))


def _parse_ip(host: str) -> Optional[IPAddress]:
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        if host.isdigit() and int(host) < 2**32:
            return ipaddress.IPv4Address(int(host))
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def _in_networks(address: IPAddress, networks) -> bool:
    return any(address in network for network in networks if network.version == address.version)


def _ip_rejection(address: IPAddress) -> Optional[str]:
    if address.is_loopback or address.is_unspecified:
        return "Localhost URLs are not allowed"
    if _in_networks(address, PRIVATE_NETWORKS):
        return "Private IP addresses are not allowed"
    if _in_networks(address, LINK_LOCAL_NETWORKS):
        return "Link-local addresses are not allowed"
    if address.is_multicast or address.is_reserved:
        return "Reserved IP addresses are not allowed"
    return None


def check_url_safety(url: str) -> None:
    """Raise :class:`UnsafeUrlError` when ``url`` must not be fetched. No network I/O."""
    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower().rstrip(".")
    except ValueError as exc:
        raise UnsafeUrlError("Invalid URL format") from exc

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise UnsafeUrlError(f"Protocol {scheme or '(none)'}: is not allowed")
    if parts.username or parts.password:
        raise UnsafeUrlError("URLs with authentication credentials are not allowed")
    if ENCODED_CONTROL_RE.search(url):
        raise UnsafeUrlError("URL contains invalid encoded characters")
    if not host:
        raise UnsafeUrlError("Invalid URL format")

    if host in LOCALHOST_NAMES or host.endswith(".localhost"):
        raise UnsafeUrlError("Localhost URLs are not allowed")

    address = _parse_ip(host)
    if address is not None and _in_networks(address, LINK_LOCAL_NETWORKS):
        raise UnsafeUrlError("Link-local addresses are not allowed")
    if host in METADATA_HOSTS or (address is not None and str(address) in METADATA_HOSTS):
        raise UnsafeUrlError("Internal metadata endpoints are not allowed")
    if address is None:
        return
    reason = _ip_rejection(address)
    if reason:
        raise UnsafeUrlError(reason)


class WebsiteScraper:
    """Fetch a public web page as markdown through ScrapingDog."""

    def __init__(self, client: ScrapingDogClient, *, dynamic: bool = False) -> None:
        self._client = client
        self._dynamic = dynamic

    async def fetch_page_content(self, url_or_handle: str) -> WebsiteScrapingResult:
        scraped_at = utc_now()
        try:
            url = normalize_url(url_or_handle)
        except InvalidUrlError as exc:
            return WebsiteScrapingResult.fail(f"Failed to scrape website: {exc}", scraped_at, url=url_or_handle)

        try:
            check_url_safety(url)
        except UnsafeUrlError as exc:
            logger.warning(
                "Rejected unsafe website URL: %s",
                exc.reason,
                extra={"event": "website.rejected", "extra_fields": {"reason": exc.reason}},
            )
            return WebsiteScrapingResult.fail(exc.reason, scraped_at, url=url)

        try:
            content = await self._client.scrape_as_markdown(url, dynamic=self._dynamic)
        except Exception as exc:
            logger.warning("Website scrape failed for %s: %s", url, exc)
            return WebsiteScrapingResult.fail(f"Failed to scrape website: {exc}", scraped_at, url=url)

        if not content or not content.strip():
            return WebsiteScrapingResult.fail(NO_CONTENT, scraped_at, url=url)
        return WebsiteScrapingResult.ok(content, scraped_at, url=url)
