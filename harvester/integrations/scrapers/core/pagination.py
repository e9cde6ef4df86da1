"""Uniform "has more / next cursor" contract over vendor pagination tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union

from .models import PostsScrapingResult

logger = logging.getLogger(__name__)

Cursor = Union[str, int]
FetchPage = Callable[[Optional[Cursor]], Awaitable[PostsScrapingResult[Any]]]


@dataclass(frozen=True, slots=True)
class PaginationState:
    cursor: Optional[Cursor] = None
    has_more: bool = False

    @classmethod
    def from_token(cls, more_available: Any, token: Any) -> "PaginationState":
        """Opaque string token plus a boolean flag (Instagram ``next_max_id``)."""
        cursor = str(token) if token not in (None, "") else None
        return cls(cursor=cursor, has_more=bool(more_available) and cursor is not None)

    @classmethod
    def from_flagged_cursor(cls, has_more: Any, cursor: Any) -> "PaginationState":
        """Integer-ish flag plus numeric cursor (TikTok ``has_more``/``max_cursor``)."""
        flag = _truthy_flag(has_more)
        if not flag or cursor in (None, ""):
            return cls(cursor=None, has_more=False)
        return cls(cursor=cursor, has_more=True)


def _truthy_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


async def paginate(fetch_page: FetchPage, *, max_pages: int) -> AsyncIterator[PostsScrapingResult[Any]]:
    """Yield pages one after another, feeding each ``next_cursor`` back verbatim.

    Stops after a failed page, an empty page, ``has_more=False``, a missing
    cursor or ``max_pages`` pages, whichever comes first. The failed page is
    yielded so callers can surface its error.
    """
    cursor: Optional[Cursor] = None
    for page_number in range(1, max_pages + 1):
        page = await fetch_page(cursor)
        yield page
        if not page.success or not page.data:
            logger.debug("Pagination stopped at page %s (failure or empty page)", page_number)
            return
        if not page.has_more or page.next_cursor is None:
            return
        cursor = page.next_cursor
