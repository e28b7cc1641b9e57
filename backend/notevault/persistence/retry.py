"""
NoteVault Backend — Retry/Backoff Executor
============================================

What:  Re-runs a fallible async operation a bounded number of times with
       exponential backoff, but only for transient (timeout/connectivity)
       failures.
Why:   Separates "the remote store is slow or unreachable, wait and try
       again" from "the statement is wrong". Wrong statements fail on the
       first attempt; duplicate-column migrations are absorbed without a
       retry and without an alarm.
How:   Tenacity AsyncRetrying with:
       - retry_if_exception(is_transient_error): only transient errors retry
       - stop_after_attempt(max_attempts): hard upper bound on attempts
       - wait_exponential(multiplier=initial_delay): d, 2d, 4d, ...
       - reraise=True: callers see the original exception, never RetryError

Retry state lives in tenacity's per-call RetryCallState, so concurrent
callers never share attempt counters or delays.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from notevault.exceptions import RemoteStoreError

logger = logging.getLogger(__name__)

# Error codes network stacks attach to connection/timeout failures
TRANSIENT_ERROR_CODES = frozenset({
    "ETIMEDOUT",
    "ECONNRESET",
    "ECONNREFUSED",
    "UND_ERR_CONNECT_TIMEOUT",
})

TRANSIENT_MESSAGE_MARKERS = ("fetch failed", "timed out")


def is_transient_error(exc: BaseException) -> bool:
    """
    Classify an error as worth retrying.

    Transient:
        - TimeoutError / asyncio.TimeoutError, ConnectionError
        - httpx timeouts and network errors (connect, read, write, protocol)
        - RemoteStoreError flagged transient (HTTP 408/429/5xx)
        - anything carrying a connection/timeout error code
        - messages that say "fetch failed" or "timed out"
    Everything else (SQL errors, auth failures, bugs) is not.
    """
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, RemoteStoreError):
        if exc.transient:
            return True
        # SQL errors from the remote engine carry a code and are final
        if exc.code:
            return False

    code = getattr(exc, "code", None)
    if isinstance(code, str) and code.upper() in TRANSIENT_ERROR_CODES:
        return True

    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGE_MARKERS)


async def execute_with_retry(
    operation: Callable[[], Awaitable[Any]],
    max_attempts: int,
    initial_delay: float,
    ignorable: Optional[Callable[[BaseException], bool]] = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """
    Run `operation` with bounded exponential-backoff retries.

    Args:
        operation:      Zero-argument callable returning an awaitable.
        max_attempts:   Total attempts, including the first (>= 1).
        initial_delay:  Seconds to wait before the second attempt; doubled
                        before each following one.
        ignorable:      Optional predicate; an error matching it counts as a
                        successful no-op and the call returns None.
        sleep:          Awaitable used to wait between attempts (tests inject
                        a recorder here).

    Returns:
        Whatever `operation` returns, or None for an ignorable error.

    Raises:
        The original exception when it is neither transient nor ignorable,
        or when the attempts are exhausted.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception(is_transient_error),
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=initial_delay, min=0),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    # `operation` may be any callable returning an awaitable, lambdas and
    # closures included
    try:
        async for attempt in retrying:
            with attempt:
                return await operation()
    except Exception as e:
        if ignorable is not None and ignorable(e):
            logger.debug("Ignoring expected error: %s", e)
            return None
        raise
