# ============================================================================
# src/biomarker_ingestion/llm/retry.py
# ============================================================================
"""
Retry Policy

Single place for the model call's retry/backoff rules:

- Rate limiting (HTTP 429): honour Retry-After (seconds or HTTP-date) when
  the server sends it, otherwise exponential backoff from 2s (2, 4, 8).
- Transient network failures: linear backoff (attempt x 1s).
- Any other response is handed back to the caller untouched.
- At most max_retries retries after the first attempt, and never more than
  max_total_backoff seconds of cumulative waiting.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, FrozenSet, Mapping, Optional, Tuple

import aiohttp

from ..utils.exceptions import FailureReason, ModelInvocationFailure

logger = logging.getLogger(__name__)

NETWORK_ERRORS: Tuple[type, ...] = (
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
    asyncio.TimeoutError,
    ConnectionError,
)

RetryListener = Callable[[int, float, FailureReason, str], None]


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Seconds to wait from a Retry-After header, or None if absent/unreadable."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None

    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


def _header(headers: Mapping[str, Any], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    rate_limit_base_delay: float = 2.0
    network_base_delay: float = 1.0
    max_total_backoff: float = 60.0
    retryable_statuses: FrozenSet[int] = frozenset({429})
    network_errors: Tuple[type, ...] = NETWORK_ERRORS

    @classmethod
    def from_settings(cls, settings=None) -> "RetryPolicy":
        if settings is None:
            from ..config import llm_settings
            settings = llm_settings
        return cls(
            max_retries=settings.LLM_MAX_RETRIES,
            rate_limit_base_delay=settings.LLM_RATE_LIMIT_BASE_DELAY,
            network_base_delay=settings.LLM_NETWORK_BASE_DELAY,
            max_total_backoff=settings.LLM_MAX_TOTAL_BACKOFF,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def is_retryable_status(self, status: int) -> bool:
        return status in self.retryable_statuses

    def rate_limit_delay(self, retry_number: int, retry_after: Optional[float] = None) -> float:
        if retry_after is not None:
            return retry_after
        return self.rate_limit_base_delay * (2 ** (retry_number - 1))

    def network_delay(self, retry_number: int) -> float:
        return retry_number * self.network_base_delay

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        on_retry: Optional[RetryListener] = None
    ) -> Any:
        """
        Call `operation` until it returns a non-retryable response.

        `operation` returns an object with `status` and `headers`, or raises
        one of `network_errors`. Raises ModelInvocationFailure when retries
        or the backoff budget run out.
        """
        waited = 0.0

        for attempt in range(1, self.max_attempts + 1):
            status = None
            try:
                response = await operation()
            except self.network_errors as e:
                reason = FailureReason.NETWORK
                detail = f"{type(e).__name__}: {e}"
                if attempt >= self.max_attempts:
                    raise ModelInvocationFailure(
                        f"Network failure after {attempt} attempts: {detail}",
                        reason=reason,
                        attempts=attempt,
                    ) from e
                delay = self.network_delay(attempt)
            else:
                status = response.status
                if not self.is_retryable_status(status):
                    return response

                reason = FailureReason.RATE_LIMITED if status == 429 else FailureReason.UPSTREAM
                detail = f"HTTP {status}"
                if attempt >= self.max_attempts:
                    raise ModelInvocationFailure(
                        f"Rate limited: gave up after {attempt} attempts",
                        reason=reason,
                        status=status,
                        attempts=attempt,
                    )
                retry_after = parse_retry_after(_header(response.headers or {}, "Retry-After"))
                delay = self.rate_limit_delay(attempt, retry_after)

            if waited + delay > self.max_total_backoff:
                raise ModelInvocationFailure(
                    f"{detail}: retry would exceed the {self.max_total_backoff:.0f}s backoff ceiling "
                    f"(waited {waited:.1f}s, next wait {delay:.1f}s)",
                    reason=reason,
                    status=status,
                    attempts=attempt,
                )

            logger.warning(f"{detail} on attempt {attempt}/{self.max_attempts}, retrying in {delay:.1f}s")
            if on_retry is not None:
                on_retry(attempt, delay, reason, detail)

            waited += delay
            await asyncio.sleep(delay)

        # max_attempts >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")
