"""
HTTP retry/backoff shared by the Insightly, Monday, Calendly and Resend clients
"""
import asyncio
import random
from typing import Awaitable, Callable, Optional, Set

import httpx

from mediation_intake.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

# Raised before the request reached the server
UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


def is_idempotent(method: str) -> bool:
    return method.upper() in IDEMPOTENT_METHODS


def _request_method(source) -> str:
    try:
        return source.request.method
    except RuntimeError:
        # No request attached
        return ""


def can_resend_after_error(error: httpx.RequestError, idempotent: Optional[bool] = None) -> bool:
    """
    A failed read can always be sent again. A write is only resent when the
    connection was never made; after a read timeout the server may already
    have acted on it.
    """
    if isinstance(error, UNSENT_ERRORS):
        return True
    if idempotent is None:
        idempotent = is_idempotent(_request_method(error))
    return idempotent


def can_resend_after_status(response: httpx.Response, idempotent: Optional[bool] = None) -> bool:
    """429 means the request was refused unprocessed, so any method may be resent"""
    if response.status_code == 429:
        return True
    if idempotent is None:
        idempotent = is_idempotent(_request_method(response))
    return idempotent


def retry_after_seconds(response: httpx.Response) -> Optional[float]:
    """Retry-After in seconds; HTTP-date values are ignored"""
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    backoff_multiplier: float = 2.0,
    retry_statuses: Optional[Set[int]] = None,
    jitter: bool = True,
    idempotent: Optional[bool] = None,
    service: str = "HTTP",
) -> httpx.Response:
    """
    Execute an HTTP request with exponential backoff retries.

    Transport errors and retry_statuses are retried for idempotent methods.
    POST and PATCH are resent only after a connection failure or a 429.
    A Retry-After header replaces the backoff delay, capped at max_delay.

    Args:
        request_fn: Sends the request once
        idempotent: Overrides the method based decision, e.g. for a GraphQL
            query sent as POST

    Returns:
        The first response that is not retried, or the last one

    Raises:
        httpx.RequestError: A transport error that may not be resent, or the
            last one once attempts run out
    """
    statuses = DEFAULT_RETRY_STATUSES if retry_statuses is None else retry_statuses
    delay = base_delay
    attempt = 1

    while True:
        final = attempt >= max_attempts
        try:
            response = await request_fn()
        except httpx.RequestError as e:
            if final or not can_resend_after_error(e, idempotent):
                raise
            reason = type(e).__name__
            wait = None
        else:
            if final or response.status_code not in statuses or not can_resend_after_status(response, idempotent):
                return response
            reason = str(response.status_code)
            wait = retry_after_seconds(response)

        if wait is None:
            wait = min(delay, max_delay)
            if jitter and wait:
                wait = wait + random.uniform(0, wait / 2)
        else:
            wait = min(wait, max_delay)
        logger.warning(f"[yellow]⚠️  {service} request failed ({reason}), retrying in {wait:.1f}s[/yellow]")
        if wait > 0:
            await asyncio.sleep(wait)

        delay = min(delay * backoff_multiplier, max_delay)
        attempt += 1
