"""
Retry policy for PRTG API calls, built on tenacity.

Transport failures and 5xx responses are retried with exponential backoff:
250ms, 500ms, 1000ms before retries 1-3, then the last failure is re-raised.
Anything else (4xx handling, parse errors, cancellation) is never retried.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from prtg_exporter.common.exceptions import ServerResponseError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BASE_DELAY_SECONDS = 0.25

RETRYABLE_EXCEPTIONS = (httpx.TransportError, ServerResponseError)


def api_retrying(
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Optional[Callable[[RetryCallState], None]] = None,
) -> AsyncRetrying:
    """
    Build a fresh AsyncRetrying controller for one API call.

    Args:
        max_retries: Retries after the first attempt (attempts = max_retries + 1)
        base_delay: Wait before the first retry; doubles for every further retry
        sleep: Awaitable sleep used between attempts (injectable for tests)
        on_retry: Optional callback invoked before every retry wait

    Returns:
        AsyncRetrying instance; call it with the coroutine function to run

    Example:
        retrying = api_retrying()
        response = await retrying(client.send_once, build_request)
    """

    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"API call failed (attempt {retry_state.attempt_number}/"
            f"{max_retries + 1}): {exc!r}; retrying in {delay:.3f}s"
        )
        if on_retry is not None:
            on_retry(retry_state)

    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=base_delay, exp_base=2),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )
