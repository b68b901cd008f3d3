# spiral_app/core/utils.py

import ipaddress
import re
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from spiral_app.config.constants import TIME_OF_DAY_BUCKETS, TIME_OF_DAY_FALLBACK

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the models store."""
    return datetime.utcnow()


def sanitize_text_field(value: Any) -> str:
    """
    Single-line text: strips markup, collapses every run of whitespace
    (newlines and tabs included) into one space and trims the ends.
    """
    if value is None:
        return ""
    text = _TAG_RE.sub("", str(value))
    return _WS_RE.sub(" ", text).strip()


def sanitize_textarea_field(value: Any) -> str:
    """Multi-line text: strips markup but keeps line breaks."""
    if value is None:
        return ""
    text = _TAG_RE.sub("", str(value)).replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def is_blank(value: Any) -> bool:
    # 0 and False are real answers
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def clamp(value, low, high):
    return max(low, min(high, value))


def round_half_up(value, digits: int = 0):
    """Rounds halves away from zero; ``digits=0`` returns an int."""
    exponent = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    return int(rounded) if digits == 0 else float(rounded)


def day_of_week(dt: datetime) -> str:
    return dt.strftime("%A").lower()


def time_of_day(dt: datetime) -> str:
    hour = dt.hour
    for label, start, end in TIME_OF_DAY_BUCKETS:
        if start <= hour < end:
            return label
    return TIME_OF_DAY_FALLBACK


def month_start(dt: datetime) -> datetime:
    return dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def day_start(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def get_client_ip(headers, remote_addr: str = None) -> str:
    """
    First valid address from the proxy headers, then the socket peer.
    X-Forwarded-For may hold a chain; only its first entry is considered.
    """
    candidates = []
    for header in ("cf-connecting-ip", "x-forwarded-for", "x-real-ip"):
        value = headers.get(header) if headers else None
        if value:
            candidates.append(value.split(",")[0].strip())
    if remote_addr:
        candidates.append(remote_addr)

    for candidate in candidates:
        try:
            ipaddress.ip_address(candidate)
            return candidate
        except ValueError:
            continue
    return "0.0.0.0"
