import re
from datetime import datetime, timezone
from typing import Optional

from .models import InvalidIdentifier

_SEPARATORS = re.compile(r"[-\s]")
_ISBN_PREFIX = re.compile(r"^isbn", re.IGNORECASE)
_ISBN_DIGITS = re.compile(r"[0-9]{10}|[0-9]{13}")
_YEAR = re.compile(r"[0-9]{4}")


def normalize_isbn(raw: str) -> str | InvalidIdentifier:
    """
    Strip hyphens, whitespace and an optional "ISBN" prefix from scanned or typed text.

    Only the length and charset are checked (10 or 13 ASCII digits). Check digits
    are not verified, so an ISBN-10 ending in "X" is rejected.
    """
    if not isinstance(raw, str):
        return InvalidIdentifier(raw=str(raw), reason="not text")
    s = _ISBN_PREFIX.sub("", _SEPARATORS.sub("", raw))
    if not s:
        return InvalidIdentifier(raw=raw, reason="empty")
    if not _ISBN_DIGITS.fullmatch(s):
        return InvalidIdentifier(raw=raw, reason=f"expected 10 or 13 digits, got {s!r}")
    return s


def derive_isbn10(isbn13: str) -> Optional[str]:
    # Simplified: drops the 978 prefix and the check digit without computing a new one.
    if len(isbn13) == 13 and isbn13.startswith("978"):
        return isbn13[3:12]
    return None


def extract_year(pubdate: str | None) -> Optional[int]:
    m = _YEAR.search(pubdate or "")
    return int(m.group(0)) if m else None


def safe_url(u: str | None) -> Optional[str]:
    if isinstance(u, str):
        u = u.strip()
        if u.startswith("data:image/"):
            return u
        if u.lower().startswith(("http://", "https://")) and len(u) > 7:
            return u
    return None


def utc_timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
