"""Failure handling for Wikipedia API calls.

Maps HTTP statuses and MediaWiki ``{"error": {...}}`` payloads onto a small
exception hierarchy, retries the transient ones (honouring ``Retry-After``)
and sheds load through a circuit breaker while Wikipedia keeps failing.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import StrEnum
from typing import Any, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

# MediaWiki error codes that clear up on their own
# https://www.mediawiki.org/wiki/API:Errors_and_warnings
RETRYABLE_API_CODES = {"maxlag", "ratelimited", "readonly"}

# Upper bound on how long a server-requested delay may hold a request
MAX_RETRY_AFTER = 30.0


# ── Exceptions ───────────────────────────────────────────────────────────────


class APIError(Exception):
    """Base class for Wikipedia API failures."""


class TransientAPIError(APIError):
    """A failure worth retrying: network errors, 429, 5xx, maxlag.

    Args:
        message: Description of the failure.
        retry_after: Delay in seconds the server asked for, if any.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PermanentAPIError(APIError):
    """A failure that will not change on retry (404, other 4xx)."""


class MediaWikiError(PermanentAPIError):
    """The action API answered 200 with an ``error`` object."""

    def __init__(self, code: str, info: str) -> None:
        super().__init__(f"MediaWiki error '{code}': {info}")
        self.code = code
        self.info = info


class CircuitOpenError(APIError):
    """Circuit breaker is open; calls are being shed."""


# ── Response handling ────────────────────────────────────────────────────────


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Seconds to wait according to a ``Retry-After`` header.

    Accepts both delta-seconds and HTTP-date forms. Returns None when the
    header is absent or unreadable.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


def check_response(response: httpx.Response) -> Any:
    """Return the decoded JSON body of *response* or raise an :class:`APIError`.

    Raises:
        TransientAPIError: On 429 or 5xx, or a retryable MediaWiki error code.
            ``retry_after`` carries the server's ``Retry-After`` when given.
        PermanentAPIError: On any other 4xx.
        MediaWikiError: On any other MediaWiki error payload.
    """
    status = response.status_code
    retry_after = parse_retry_after(response.headers.get("Retry-After"))

    if status in RETRY_STATUS_CODES or status >= 500:
        raise TransientAPIError(f"Wikipedia returned HTTP {status}", retry_after=retry_after)
    if status >= 400:
        raise PermanentAPIError(f"Wikipedia returned HTTP {status}")

    data = response.json()
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        code = str(data["error"].get("code", "unknown"))
        info = str(data["error"].get("info", "unknown"))
        if code in RETRYABLE_API_CODES:
            raise TransientAPIError(f"MediaWiki error '{code}': {info}", retry_after=retry_after)
        raise MediaWikiError(code, info)
    return data


# ── Retry ────────────────────────────────────────────────────────────────────


_backoff = wait_exponential(multiplier=1, min=1, max=10)


def wait_for_server(retry_state: RetryCallState) -> float:
    """Tenacity wait: the server's ``Retry-After`` if it sent one, else backoff."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        return min(retry_after, MAX_RETRY_AFTER)
    return _backoff(retry_state)


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Tenacity ``before_sleep`` callback that logs each retry."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Wikipedia request failed (attempt %d), retrying in %.1fs: %s",
        retry_state.attempt_number,
        delay,
        exc,
    )


resilient_request = retry(
    retry=retry_if_exception_type(TransientAPIError),
    stop=stop_after_attempt(3),
    wait=wait_for_server,
    before_sleep=log_retry_attempt,
    reraise=True,
)
"""Tenacity decorator retrying ``TransientAPIError`` up to three attempts."""


# ── Circuit breaker ──────────────────────────────────────────────────────────


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Stops calling Wikipedia after repeated transient failures.

    After ``fail_max`` consecutive transient failures the breaker opens and
    calls fail fast with :class:`CircuitOpenError`. Once ``reset_timeout``
    seconds pass, one trial call is let through; success closes the breaker,
    failure opens it again.
    """

    def __init__(
        self,
        name: str,
        fail_max: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.fail_max = fail_max
        self.reset_timeout = reset_timeout
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._fail_count = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._clock() - self._opened_at >= self.reset_timeout:
            self._state = CircuitState.HALF_OPEN
        return self._state

    @property
    def fail_count(self) -> int:
        return self._fail_count

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._fail_count = 0

    def _record_failure(self, trial: bool) -> None:
        self._fail_count += 1
        if trial or self._fail_count >= self.fail_max:
            self._state = CircuitState.OPEN
            self._opened_at = self._clock()
            logger.warning(
                "Circuit '%s' opened after %d consecutive failures", self.name, self._fail_count
            )

    async def call(self, make_call: Callable[[], Awaitable[T]]) -> T:
        """Invoke *make_call* unless the breaker is open.

        Only ``TransientAPIError`` counts as a failure; a permanent error
        says nothing about Wikipedia's health.

        Raises:
            CircuitOpenError: If the breaker is open. *make_call* is not invoked.
        """
        current = self.state
        if current == CircuitState.OPEN:
            raise CircuitOpenError(f"Circuit '{self.name}' is open")

        try:
            result = await make_call()
        except TransientAPIError:
            self._record_failure(trial=current == CircuitState.HALF_OPEN)
            raise

        self.reset()
        return result
