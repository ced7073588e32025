"""Retry delays for failed jobs."""

from flowhub.core.errors import retry_after_of


def calculate_backoff(attempt: int) -> float:
    """Calculate exponential backoff delay in seconds.

    Args:
        attempt: Current attempt number (0-indexed)

    Returns:
        Delay in seconds (1s, 2s, 4s, 8s, 16s)
    """
    return min(2**attempt, 16.0)


def should_retry(attempt: int, max_attempts: int) -> bool:
    """Check if another attempt is allowed.

    Args:
        attempt: Attempt that just failed (1-indexed)
        max_attempts: Total tries allowed for the job
    """
    return attempt < max_attempts


def retry_delay(error: BaseException, attempt: int) -> float:
    """Get the delay before the next attempt.

    A provider hint (``retry_after``) wins over the backoff curve.

    Args:
        error: Exception raised by the failed attempt
        attempt: Attempt that just failed (1-indexed)
    """
    retry_after = retry_after_of(error)
    if retry_after is not None and retry_after > 0:
        return float(retry_after)
    return calculate_backoff(attempt - 1)
