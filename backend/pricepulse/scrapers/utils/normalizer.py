"""Data normalization utilities for price parsing and URL cleanup."""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Tuple
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse, urljoin

import structlog

logger = structlog.get_logger(__name__)


# (token, canonical symbol). Longer tokens first so "US$" wins over "$".
CURRENCY_TOKENS: Tuple[Tuple[str, str], ...] = (
    ("INR", "₹"),
    ("Rs.", "₹"),
    ("Rs", "₹"),
    ("₹", "₹"),
    ("USD", "$"),
    ("US$", "$"),
    ("$", "$"),
    ("EUR", "€"),
    ("€", "€"),
    ("GBP", "£"),
    ("£", "£"),
    ("JPY", "¥"),
    ("¥", "¥"),
    ("KRW", "₩"),
    ("₩", "₩"),
    ("원", "₩"),
)


def _token_patterns(token: str) -> Tuple[re.Pattern, re.Pattern]:
    escaped = re.escape(token)
    if token[0].isalpha() and token.isascii():
        leading = re.compile(rf"(?<![A-Za-z]){escaped}\s*\d", re.IGNORECASE)
        trailing = re.compile(rf"\d\s*{escaped}(?![A-Za-z])", re.IGNORECASE)
    else:
        leading = re.compile(rf"{escaped}\s*\d")
        trailing = re.compile(rf"\d\s*{escaped}")
    return leading, trailing


_CURRENCY_PATTERNS = [
    (_token_patterns(token), symbol) for token, symbol in CURRENCY_TOKENS
]

_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_RANGE_RE = re.compile(
    r"(\d[\d,]*(?:\.\d+)?)\s*(?:-|–|—|to)\s*\D{0,4}?(\d[\d,]*(?:\.\d+)?)(?![\d.,]|\s*%)",
    re.IGNORECASE,
)

ESTIMATED_DISCOUNT = Decimal("0.9")


def detect_currency(text: str) -> Optional[str]:
    """Find a currency symbol or code directly before or after a number.

    Args:
        text: Raw price text (e.g. "Rs. 1,299", "12.99 USD")

    Returns:
        Canonical currency symbol, or None if nothing was recognised
    """
    for (leading, trailing), symbol in _CURRENCY_PATTERNS:
        if leading.search(text) or trailing.search(text):
            return symbol
    return None


def _to_decimal(number: str) -> Optional[Decimal]:
    try:
        return Decimal(number.replace(",", ""))
    except InvalidOperation:
        return None


def parse_price(text: Any, fallback_currency: str) -> Tuple[Optional[Decimal], str]:
    """Parse a price string into an amount and a currency symbol.

    Handles:
    - "₹1,299" -> (1299, "₹")
    - "Rs. 1,23,456.50" -> (123456.50, "₹")
    - "12.99 USD" -> (12.99, "$")
    - "₹499 - ₹799" -> (499, "₹")  lower bound of a range
    - "1,234원" -> (1234, "₩")

    Commas are always thousands separators. Numeric input is passed through.

    Args:
        text: Raw price text, or a number already parsed by a JSON decoder
        fallback_currency: Currency to report when the text names none

    Returns:
        Tuple of (amount or None when no number is present, currency symbol)
    """
    if text is None or isinstance(text, bool):
        return None, fallback_currency

    if isinstance(text, (int, float, Decimal)):
        amount = _to_decimal(str(text))
        if amount is None or amount < 0:
            return None, fallback_currency
        return amount, fallback_currency

    cleaned = str(text).replace("\xa0", " ").strip()
    if not cleaned:
        return None, fallback_currency

    currency = detect_currency(cleaned) or fallback_currency

    range_match = _RANGE_RE.search(cleaned)
    if range_match:
        low = _to_decimal(range_match.group(1))
        high = _to_decimal(range_match.group(2))
        if low is not None and high is not None:
            return min(low, high), currency

    match = _NUMBER_RE.search(cleaned)
    if not match:
        return None, currency

    return _to_decimal(match.group(0)), currency


def estimate_from_previous_price(previous_price: Decimal) -> Decimal:
    """Estimate a current price as 90% of the previous (list) price.

    Records built from this value must be flagged as estimated.
    """
    return (previous_price * ESTIMATED_DISCOUNT).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


def clean_text(text: Any) -> str:
    """Collapse runs of whitespace and strip the ends; non-strings are stringified."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip()


def coerce_in_stock(value: Any) -> Optional[bool]:
    """Interpret stock fields found in embedded data or page text.

    Args:
        value: bool, number, or text such as "InStock", "OUT_OF_STOCK",
            "Currently unavailable", "https://schema.org/InStock"

    Returns:
        True/False when recognised, None when the value says nothing
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0

    lowered = re.sub(r"[\s_\-]", "", str(value).lower())
    if not lowered:
        return None
    for marker in ("outofstock", "unavailable", "soldout", "notavailable"):
        if marker in lowered:
            return False
    if lowered in ("na", "false", "no"):
        return False
    for marker in ("instock", "available", "true", "yes", "limitedstock"):
        if marker in lowered:
            return True
    return None


def normalize_url(url: str) -> str:
    """Normalize a URL by removing tracking parameters.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    if not url:
        return url

    tracking_params = [
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_content",
        "utm_term",
        "ref",
        "ref_",
        "tag",
        "psc",
        "fbclid",
        "gclid",
        "mc_cid",
        "mc_eid",
    ]

    parsed = urlparse(url.strip())
    query_params = parse_qs(parsed.query)

    filtered_params = {
        k: v for k, v in query_params.items() if k not in tracking_params
    }

    new_query = urlencode(filtered_params, doseq=True)

    return urlunparse(
        (
            parsed.scheme,
            parsed.netloc.lower(),
            parsed.path,
            parsed.params,
            new_query,
            "",
        )
    )


def absolute_url(base_url: str, href: Optional[str]) -> Optional[str]:
    """Resolve a possibly relative product link against the page URL."""
    if not href:
        return None
    return urljoin(base_url, href.strip())


_ASIN_RE = re.compile(r"/(?:dp|gp/product|product)/([A-Z0-9]{10})(?:[/?]|$)", re.IGNORECASE)


def extract_asin(url: str) -> Optional[str]:
    """Pull the 10-character Amazon product identifier out of a URL."""
    if not url:
        return None
    match = _ASIN_RE.search(url)
    return match.group(1).upper() if match else None
