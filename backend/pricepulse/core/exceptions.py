"""Custom exception classes for the application.

Every acquisition failure is recovered inside the pipeline. Callers of the
acquisition service only ever see records; these types exist so the pipeline
can tell a retryable hiccup from a reason to move on to the next method.
"""

from typing import Optional


class PricePulseException(Exception):
    """Base exception for all PricePulse errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class AcquisitionError(PricePulseException):
    """Base class for failures during a single acquisition attempt.

    Attributes:
        retryable: Whether another attempt of the same method may succeed
    """

    retryable: bool = False


class FetchError(AcquisitionError):
    """Raised when the fetch itself fails."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class NetworkError(FetchError):
    """Connection-level failure (DNS, refused, reset, TLS)."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Network error: {cause!r}")


class FetchTimeoutError(FetchError):
    """The adaptive deadline expired before the response arrived."""

    def __init__(self, deadline: float):
        self.deadline = deadline
        super().__init__(f"Fetch timed out after {deadline:.1f}s")


class HTTPStatusFetchError(FetchError):
    """Non-success HTTP status that is not worth retrying (most 4xx)."""

    retryable = False

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(message or f"HTTP {status_code}", status_code=status_code)


class RateLimitedError(HTTPStatusFetchError):
    """403/429/503 responses. Retry through a different intermediary."""

    retryable = True

    def __init__(self, status_code: int):
        super().__init__(status_code, f"Rate limited (HTTP {status_code})")


class UpstreamServerError(HTTPStatusFetchError):
    """5xx responses other than 503."""

    retryable = True

    def __init__(self, status_code: int):
        super().__init__(status_code, f"Upstream server error (HTTP {status_code})")


class ChallengeDetectedError(AcquisitionError):
    """The payload is a bot-detection interstitial."""

    retryable = True

    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(f"Challenge page detected: '{pattern}'")


class ContentTooShortError(AcquisitionError):
    """The payload is too small to be a real product page."""

    retryable = True

    def __init__(self, length: int, minimum: int):
        self.length = length
        self.minimum = minimum
        super().__init__(f"Payload too short ({length} < {minimum} characters)")


class ExtractionError(AcquisitionError):
    """A strategy could not produce a record from the payload."""

    def __init__(self, platform: str, message: str):
        self.platform = platform
        super().__init__(f"Extraction failed for {platform}: {message}")


class NoContainerFound(ExtractionError):
    """Neither a title nor a price could be located."""

    def __init__(self, platform: str):
        super().__init__(platform, "no product container found")


class ConfigurationError(AcquisitionError):
    """A method is missing credentials or endpoints. The method is skipped."""

    def __init__(self, method: str, message: str):
        self.method = method
        super().__init__(f"Method '{method}' is not configured: {message}")


class UnknownPlatformError(PricePulseException):
    """Raised when no platform is registered for a URL or slug."""

    def __init__(self, identifier: str):
        super().__init__(f"No platform registered for '{identifier}'")
