"""Retry policy for failed requests.

:class:`RetryPolicy` decides, after each failed attempt, whether the pipeline
should try again and how long to wait first:

- Client errors (4xx) are final, except ``429 Too Many Requests``.
- Transport failures (status ``0``), 5xx responses and 429 are retried.
- At most ``max_retries`` retries follow the first attempt.
- The delay grows linearly: ``attempt * base_delay_ms``. Optional jitter is
  added on top, and a 429 carrying ``Retry-After`` waits at least as long as
  the server asked (capped at ``max_delay_ms``).

The policy is pure: it never sleeps itself, so it can be unit-tested without
a clock.
"""

from __future__ import annotations

import email.utils
import math
import random
import time
from dataclasses import dataclass
from typing import Optional

from trayar.models import ApiErrorInfo, RequestConfig

MAX_RETRIES = 3
BASE_DELAY_MS = 1000


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of :meth:`RetryPolicy.should_retry`."""

    retry: bool
    delay_ms: int = 0


class RetryPolicy:
    """Linear-backoff retry policy.

    Args:
        max_retries: Retries allowed after the first attempt.
        base_delay_ms: Backoff step; attempt *n* waits ``n * base_delay_ms``.
        jitter_ms: Upper bound of uniform random jitter added to each delay.
        max_delay_ms: Cap applied to server-requested ``Retry-After`` delays.
        rng: Random source for jitter.

    Example::

        policy = RetryPolicy()
        policy.should_retry(1, ApiErrorInfo(code="SERVER_ERROR", message="", status_code=503))
        # RetryDecision(retry=True, delay_ms=1000)
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        base_delay_ms: int = BASE_DELAY_MS,
        jitter_ms: int = 0,
        max_delay_ms: int = 30000,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.jitter_ms = jitter_ms
        self.max_delay_ms = max_delay_ms
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: RequestConfig) -> RetryPolicy:
        """Build a policy from the ``request`` section of the client config."""
        return cls(
            max_retries=config.max_retries,
            base_delay_ms=config.retry_base_delay_ms,
            jitter_ms=config.retry_jitter_ms,
            max_delay_ms=config.retry_max_delay_ms,
        )

    @staticmethod
    def is_retryable(status_code: int) -> bool:
        """Return True for transport failures, 429 and 5xx."""
        return status_code == 0 or status_code == 429 or status_code >= 500

    def should_retry(
        self,
        attempt: int,
        error: ApiErrorInfo,
        retry_after_ms: Optional[int] = None,
    ) -> RetryDecision:
        """Decide whether to retry after failed attempt number *attempt*.

        Args:
            attempt: 1-based number of the attempt that just failed.
            error: The normalised error of that attempt.
            retry_after_ms: Server-requested delay from a ``Retry-After``
                header, honoured for 429 responses only.

        Returns:
            A :class:`RetryDecision`. ``delay_ms`` is 0 when ``retry`` is
            False.
        """
        if attempt > self.max_retries or not self.is_retryable(error.status_code):
            return RetryDecision(retry=False)

        delay = attempt * self.base_delay_ms
        if error.status_code == 429 and retry_after_ms is not None:
            delay = max(delay, min(retry_after_ms, self.max_delay_ms))
        if self.jitter_ms:
            delay += self._rng.randint(0, self.jitter_ms)
        return RetryDecision(retry=True, delay_ms=delay)


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[int]:
    """Convert a ``Retry-After`` header value to milliseconds.

    Accepts both delta-seconds and an HTTP-date. Returns ``None`` when the
    header is missing or unparseable.
    """
    if not value:
        return None
    try:
        return max(0, int(float(value) * 1000))
    except ValueError:
        pass
    try:
        ts = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if ts is None:
        return None
    now = time.time() if now is None else now
    # Round up to whole seconds so short waits are not truncated.
    return max(0, int(math.ceil(ts.timestamp() - now)) * 1000)
