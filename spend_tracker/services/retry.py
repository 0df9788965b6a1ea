"""
Caller-side retries.

The core never retries on its own. Entry points that want to ride out
rate limits or flaky connections wrap their calls here; only
UpstreamTransientError is retried, everything else surfaces immediately.
"""

from typing import Any, Awaitable, Callable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from spend_tracker.errors import UpstreamTransientError


logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.warning(
        "retrying_transient_failure",
        attempt=state.attempt_number,
        error=str(error),
    )


async def retry_transient(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    attempts: int = 3,
    min_wait: float = 2,
    max_wait: float = 10,
    **kwargs: Any,
) -> T:
    """
    Await `func(*args, **kwargs)`, retrying transient upstream failures.

    Uses exponential backoff between attempts. The last error is re-raised
    once attempts are exhausted.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(UpstreamTransientError),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            return await func(*args, **kwargs)
