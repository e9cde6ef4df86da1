"""Retry helpers shared across the scraper integration."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from ....config import AppConfig
from .errors import MediaFetchError, VendorHTTPError

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


def _always(_: BaseException) -> bool:
    return True


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Capped exponential backoff with additive jitter.

    ``max_attempts`` counts every call including the first one. The delay
    before retry ``n`` (0-indexed) is ``min(base_delay * 2**n, max_delay)``
    plus up to ``jitter_ratio`` of that value.
    """

    max_attempts: int
    base_delay: float
    max_delay: float
    jitter_ratio: float = 0.0
    retryable: Callable[[BaseException], bool] = _always
    rand: Callable[[], float] = field(default=random.random, compare=False)

    @property
    def max_retries(self) -> int:
        return max(self.max_attempts - 1, 0)

    def compute_delay(self, retry_index: int) -> float:
        delay = min(self.base_delay * (2**retry_index), self.max_delay)
        if self.jitter_ratio:
            delay += delay * self.jitter_ratio * self.rand()
        return delay


class wait_policy(wait_base):
    """Adapter exposing :meth:`RetryPolicy.compute_delay` to tenacity."""

    def __init__(self, policy: RetryPolicy) -> None:
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.policy.compute_delay(retry_state.attempt_number - 1)


def _log_before_sleep(policy: RetryPolicy, logger: logging.Logger, label: str) -> Callable[[RetryCallState], None]:
    def _log(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s failed (%s). Retry %s/%s after %.2fs",
            label,
            exc,
            retry_state.attempt_number,
            policy.max_retries,
            delay,
            extra={
                "event": "retry.scheduled",
                "extra_fields": {
                    "label": label,
                    "attempt": retry_state.attempt_number,
                    "max_retries": policy.max_retries,
                    "delay_seconds": round(delay, 3),
                },
            },
        )

    return _log


async def execute_with_policy(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    logger: logging.Logger,
    label: str,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """Run ``fn`` until it succeeds, raises a non-retryable error or attempts run out.

    The last exception is re-raised unchanged once the policy gives up.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(policy.max_attempts, 1)),
        wait=wait_policy(policy),
        retry=retry_if_exception(policy.retryable),
        before_sleep=_log_before_sleep(policy, logger, label),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(fn)


def _is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, VendorHTTPError) and exc.is_rate_limited


def _is_retryable_fetch(exc: BaseException) -> bool:
    return isinstance(exc, MediaFetchError) and exc.retryable


def vendor_retry_policy(config: AppConfig) -> RetryPolicy:
    """Retry vendor calls on HTTP 429 only."""
    return RetryPolicy(
        max_attempts=config.vendor_max_retries + 1,
        base_delay=config.vendor_backoff_base_seconds,
        max_delay=config.vendor_backoff_cap_seconds,
        jitter_ratio=config.vendor_backoff_jitter,
        retryable=_is_rate_limited,
    )


def media_retry_policy(config: AppConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.media_fetch_attempts,
        base_delay=config.media_retry_base_seconds,
        max_delay=config.vendor_backoff_cap_seconds,
        retryable=_is_retryable_fetch,
    )
