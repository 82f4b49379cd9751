"""Retry policy for acquisition methods, built on tenacity."""

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
import structlog

from pricepulse.core.exceptions import AcquisitionError


logger = structlog.get_logger(__name__)


def is_retryable(exc: BaseException) -> bool:
    """True for acquisition failures that another attempt may fix."""
    return isinstance(exc, AcquisitionError) and exc.retryable


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "acquisition_retry_scheduled",
        attempt=retry_state.attempt_number,
        sleep_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else 0,
        error_type=type(exc).__name__ if exc else None,
        error=str(exc) if exc else None,
    )


def method_retrying(
    max_attempts: int,
    backoff_base: float,
    backoff_max: float,
) -> AsyncRetrying:
    """Build the retry controller for one acquisition method.

    The n-th retry waits backoff_base * 2**(n-1) seconds, capped at
    backoff_max. Only retryable AcquisitionErrors are retried; anything else
    propagates immediately. The last error is re-raised when attempts run out.

    Args:
        max_attempts: Total attempts for the method (at least 1)
        backoff_base: Multiplier for the exponential wait, in seconds
        backoff_max: Upper bound for a single wait, in seconds

    Returns:
        AsyncRetrying usable as ``async for attempt in method_retrying(...)``
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=backoff_base, min=0, max=backoff_max),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_before_sleep,
        reraise=True,
    )
