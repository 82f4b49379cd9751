"""Anti-block content classification.

Decides whether a fetched payload is a real page, a truncated response or a
bot-detection interstitial. Pure: no state, no I/O.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


DEFAULT_MIN_VALID_LENGTH = 1000

CHALLENGE_MARKERS: Tuple[str, ...] = (
    "captcha",
    "robot check",
    "verify you are a human",
    "automated access",
    "unusual traffic",
    "security challenge",
    "suspicious activity",
    "access denied",
    "temporarily blocked",
)


class Verdict(str, Enum):
    OK = "ok"
    TOO_SHORT = "too_short"
    CHALLENGE_DETECTED = "challenge_detected"


@dataclass(frozen=True)
class Classification:
    """Result of classifying one payload."""

    verdict: Verdict
    matched_pattern: Optional[str] = None
    length: int = 0

    @property
    def ok(self) -> bool:
        return self.verdict is Verdict.OK


def _as_text(payload: Union[bytes, str]) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload


def classify(
    payload: Union[bytes, str, None],
    min_valid_length: int = DEFAULT_MIN_VALID_LENGTH,
) -> Classification:
    """Classify a payload.

    The length check runs first, so a short challenge page is TOO_SHORT.

    Args:
        payload: Response body
        min_valid_length: Smallest plausible product page, in characters

    Returns:
        Classification with the verdict and, for challenges, the marker found
    """
    text = _as_text(payload or "")
    length = len(text)

    if length < min_valid_length:
        return Classification(Verdict.TOO_SHORT, length=length)

    lowered = text.lower()
    for marker in CHALLENGE_MARKERS:
        if marker in lowered:
            return Classification(Verdict.CHALLENGE_DETECTED, matched_pattern=marker, length=length)

    return Classification(Verdict.OK, length=length)
