"""Retry helper for rate-limited and transient GitHub API failures."""

import logging
import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from .errors import is_retryable, retry_after_seconds

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0, 8.0)


def with_retry(
    fn: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
) -> T:
    """Call ``fn`` and retry it on rate-limit or transient errors.

    The first attempt is followed by up to ``max_retries`` retries. Delay for
    retry ``n`` is ``delays[n]`` (the last delay repeats), or the server's
    Retry-After value when one is present. Non-retryable errors propagate
    immediately, and the last error propagates once retries are exhausted.

    Args:
        fn: Zero-argument callable performing the API call
        max_retries: Retries allowed after the first attempt
        delays: Backoff schedule in seconds

    Returns:
        Whatever ``fn`` returns
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e) or attempt >= max_retries:
                raise

            delay = retry_after_seconds(e)
            if delay is None:
                delay = delays[min(attempt, len(delays) - 1)] if delays else 0.0

            attempt += 1
            logger.warning(
                "Retryable API error (%s), retry %d/%d in %.1fs",
                e,
                attempt,
                max_retries,
                delay,
            )
            time.sleep(delay)
