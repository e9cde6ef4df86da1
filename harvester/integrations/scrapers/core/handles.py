"""Platform handle extraction from free-form user input.

Extraction is layered and each layer is a plain function so it can be
exercised on its own:

1. ``from_bare``   ``@name`` or ``name`` with no path and no platform domain
2. ``from_url``    parse as a URL and pick the handle path segment
3. ``from_regex``  pattern match for strings a URL parser cannot make sense of
4. ``from_raw``    the trimmed input itself

The first layer that yields a candidate wins; the candidate is then checked
against the platform's username rules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlsplit


@dataclass(frozen=True, slots=True)
class HandleRules:
    domains: tuple[str, ...]
    pattern: re.Pattern[str]
    reserved: frozenset[str] = frozenset()
    at_prefixed_path: bool = False

    def matches_host(self, host: str) -> bool:
        host = host.lower().rstrip(".")
        return any(host == domain or host.endswith("." + domain) for domain in self.domains)

    def is_valid(self, handle: str) -> bool:
        return bool(handle) and handle.lower() not in self.reserved and bool(self.pattern.fullmatch(handle))


INSTAGRAM = HandleRules(
    domains=("instagram.com", "instagr.am"),
    pattern=re.compile(r"[A-Za-z0-9._]{1,30}"),
    reserved=frozenset({"p", "reel", "reels", "tv", "stories", "explore", "accounts", "direct"}),
)

TIKTOK = HandleRules(
    domains=("tiktok.com",),
    pattern=re.compile(r"[a-zA-Z0-9_][a-zA-Z0-9_.]{0,22}[a-zA-Z0-9_]|[a-zA-Z0-9_]"),
    reserved=frozenset({"video", "discover", "tag", "music", "foryou", "explore"}),
    at_prefixed_path=True,
)

FACEBOOK = HandleRules(
    domains=("facebook.com", "fb.com"),
    pattern=re.compile(r"[A-Za-z0-9._\-]{1,100}"),
    reserved=frozenset({"pages", "groups", "watch", "events", "people", "share", "profile.php", "sharer"}),
)


def _strip_at(value: str) -> str:
    return value[1:] if value.startswith("@") else value


def from_bare(raw: str, rules: HandleRules) -> Optional[str]:
    if "/" in raw or rules.matches_host(raw.lstrip("@")):
        return None
    if "." in raw and not rules.pattern.fullmatch(_strip_at(raw)):
        return None
    return _strip_at(raw)


def from_url(raw: str, rules: HandleRules) -> Optional[str]:
    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        parts = urlsplit(candidate)
        host = parts.hostname or ""
    except ValueError:
        return None
    if not rules.matches_host(host):
        return None
    segments = [segment for segment in parts.path.split("/") if segment]
    if not segments:
        return None
    if rules.at_prefixed_path:
        for segment in segments:
            if segment.startswith("@"):
                return segment[1:]
    return _strip_at(segments[0])


def _domain_regex(rules: HandleRules) -> re.Pattern[str]:
    domains = "|".join(re.escape(domain) for domain in rules.domains)
    return re.compile(rf"(?:{domains})/@?([^/?#\s]+)", re.IGNORECASE)


def from_regex(raw: str, rules: HandleRules) -> Optional[str]:
    match = _domain_regex(rules).search(raw)
    return match.group(1) if match else None


def from_raw(raw: str, rules: HandleRules) -> Optional[str]:
    if rules.matches_host(raw):
        return None
    return _strip_at(raw) or None


LAYERS: tuple[Callable[[str, HandleRules], Optional[str]], ...] = (from_bare, from_url, from_regex, from_raw)


def extract_handle(value: str | None, rules: HandleRules) -> Optional[str]:
    """Return the platform handle in ``value`` or ``None`` when nothing plausible remains."""
    if not value:
        return None
    raw = value.strip()
    if not raw:
        return None
    for layer in LAYERS:
        candidate = layer(raw, rules)
        if candidate is not None:
            return candidate if rules.is_valid(candidate) else None
    return None


def extract_instagram_handle(value: str | None) -> Optional[str]:
    return extract_handle(value, INSTAGRAM)


def extract_tiktok_handle(value: str | None) -> Optional[str]:
    handle = extract_handle(value, TIKTOK)
    if handle and ".." in handle:
        return None
    return handle


def extract_facebook_handle(value: str | None) -> Optional[str]:
    return extract_handle(value, FACEBOOK)


def build_facebook_url(handle_or_url: str) -> str:
    """Vendor lookups for Facebook take a page URL rather than a handle."""
    trimmed = handle_or_url.strip()
    if trimmed.startswith(("http://", "https://")):
        return trimmed
    if "facebook.com" in trimmed or "fb.com" in trimmed:
        return f"https://{trimmed}"
    return f"https://www.facebook.com/{_strip_at(trimmed)}/"
