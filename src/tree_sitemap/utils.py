"""Utility functions for the sitemap builder."""

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

PriorityValue = Union[Decimal, float, int, str]

_PRIORITY_QUANTUM = Decimal("0.1")

# Characters XML 1.0 documents cannot contain
_XML_ILLEGAL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]')


def is_xml_safe(text: str) -> bool:
    """Check that text holds only characters allowed in an XML document."""
    return not _XML_ILLEGAL_CHARS.search(text)


def is_valid_url(url: Optional[str]) -> bool:
    """Check if URL is valid, uses HTTP/HTTPS scheme and can be written to XML."""
    if not url or not isinstance(url, str) or not is_xml_safe(url):
        return False
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
    except ValueError:
        return False


def parse_priority(value: PriorityValue) -> Decimal:
    """
    Convert a priority value to a Decimal in the range [0, 1].

    Floats go through their shortest string form so that 0.55 stays 0.55
    instead of its binary expansion.

    Raises:
        ValueError: if the value is not numeric or out of range
    """
    if isinstance(value, bool):
        raise ValueError(f"Priority must be numeric, got {value!r}")
    try:
        if isinstance(value, float):
            priority = Decimal(repr(value))
        else:
            priority = Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValueError(f"Priority must be numeric, got {value!r}")

    if not priority.is_finite() or priority < 0 or priority > 1:
        raise ValueError(f"Priority must be between 0.0 and 1.0, got {value!r}")

    return priority


def format_priority(priority: Decimal) -> str:
    """Format priority with exactly one fractional digit, rounding half up."""
    return str(priority.quantize(_PRIORITY_QUANTUM, rounding=ROUND_HALF_UP))


def format_lastmod(value: datetime) -> str:
    """Format a timestamp as ISO-8601 with offset. Naive values are UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="seconds")


def clean_text(text: Optional[str]) -> str:
    """Clean and normalize text content."""
    if not text:
        return ""

    # Remove extra whitespace
    text = re.sub(r'\s+', ' ', text.strip())

    # Remove control characters
    text = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', text)

    return text


def normalize_root_path(path: str) -> str:
    """Normalize a page path so that it starts and ends with a slash."""
    path = re.sub(r'/{2,}', '/', "/" + (path or "").strip("/") + "/")
    return path


def cache_key_for_root(root_path: str) -> str:
    """Build the cache key for a sitemap rooted at the given path."""
    root_path = normalize_root_path(root_path)
    # Normalized paths always start with a slash, so "home" is unambiguous
    return "sitemap:home" if root_path == "/" else f"sitemap:{root_path}"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Set up logging configuration."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        minutes = seconds / 60
        return f"{minutes:.1f}m"


def format_number(number: int) -> str:
    """Format number with thousands separators."""
    return f"{number:,}"
