"""Acquisition utilities: intermediary health, classification, fetch and normalization."""

from .intermediary_registry import (
    Intermediary,
    IntermediaryHealthRegistry,
    IntermediaryStats,
)
from .content_classifier import Classification, Verdict, classify
from .timed_fetch import DeadlineProfile, FetchResult, TimedFetcher
from .user_agents import (
    USER_AGENTS,
    PROFILE_RENDER,
    PROFILE_STANDARD,
    build_headers,
    get_random_user_agent,
)
from .normalizer import (
    detect_currency,
    normalize_url,
    parse_price,
)
from .retry import method_retrying


__all__ = [
    # Intermediaries
    "Intermediary",
    "IntermediaryHealthRegistry",
    "IntermediaryStats",
    # Classification
    "Classification",
    "Verdict",
    "classify",
    # Fetch
    "DeadlineProfile",
    "FetchResult",
    "TimedFetcher",
    # Headers
    "USER_AGENTS",
    "PROFILE_RENDER",
    "PROFILE_STANDARD",
    "build_headers",
    "get_random_user_agent",
    # Normalization
    "detect_currency",
    "normalize_url",
    "parse_price",
    # Retry
    "method_retrying",
]
