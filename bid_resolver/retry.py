"""Bounded retry for external calls.

Applied at collaborator call sites only. Retries transport failures
(connection drops, timeouts); anything else is raised on the first attempt.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (httpx.TransportError, ConnectionError, TimeoutError)


def is_transient(error: BaseException) -> bool:
    """Transport failure, directly or as the cause of a wrapped pipeline error."""
    for e in (error, error.__cause__):
        if e is None:
            continue
        if isinstance(e, TRANSIENT_ERRORS):
            return True
        msg = str(e).lower()
        if "connection" in msg or "timed out" in msg or "timeout" in msg:
            return True
    return False


def call_with_retry(func: Callable[[], T], max_retries: int = 0, backoff_s: float = 0.5,
                    sleep: Callable[[float], None] = time.sleep) -> T:
    """Call ``func``; on a transient error retry up to ``max_retries`` times.

    Backoff doubles after each failed attempt.
    """
    last_error: Optional[Exception] = None
    for attempt in range(max_retries + 1):
        try:
            return func()
        except Exception as e:
            if not is_transient(e) or attempt >= max_retries:
                raise
            last_error = e
            delay = backoff_s * (2 ** attempt)
            logger.warning(f"Transient error (attempt {attempt + 1}/{max_retries + 1}), retrying in {delay}s: {e}")
            sleep(delay)
    raise last_error
