import logging
from typing import Optional

import requests

from ..models import UNKNOWN_AUTHOR, BookDraft, LookupResult, NotFound, ProviderError
from ..utils import extract_year

logger = logging.getLogger(__name__)

API_URL = "https://openlibrary.org/api/books"
COVER_SIZES = ("large", "medium", "small")


def _authors(book: dict) -> tuple[str, ...]:
    names = []
    raw = book.get("authors")
    for a in raw if isinstance(raw, list) else []:
        name = a.get("name") if isinstance(a, dict) else None
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return tuple(names) or (UNKNOWN_AUTHOR,)


def _cover(book: dict) -> Optional[str]:
    cover = book.get("cover") or {}
    if not isinstance(cover, dict):
        return None
    for size in COVER_SIZES:
        url = cover.get(size)
        if isinstance(url, str) and url.strip():
            return url.strip()
    return None


def parse_response(isbn: str, data) -> LookupResult:
    if not isinstance(data, dict):
        return ProviderError(OpenLibraryProvider.name, isbn, "payload is not an object")
    book = data.get(f"ISBN:{isbn}")
    if not book:
        return NotFound(OpenLibraryProvider.name, isbn)
    if not isinstance(book, dict):
        return ProviderError(OpenLibraryProvider.name, isbn, "book entry is not an object")
    title = book.get("title")
    if not isinstance(title, str) or not title.strip():
        return NotFound(OpenLibraryProvider.name, isbn)
    publish_date = book.get("publish_date")
    return BookDraft(
        isbn=isbn,
        title=title.strip(),
        authors=_authors(book),
        cover_url=_cover(book),
        published_year=extract_year(publish_date if isinstance(publish_date, str) else None),
        source=OpenLibraryProvider.name,
    )


class OpenLibraryProvider:
    """Open Library "books" API, bibliographic data and cover links in one call."""

    name = "openlibrary"

    def __init__(self, timeout: float = 10, session: requests.Session | None = None):
        self.timeout = timeout
        self.session = session

    def lookup(self, isbn: str) -> LookupResult:
        http = self.session or requests
        params = {"bibkeys": f"ISBN:{isbn}", "format": "json", "jscmd": "data"}
        logger.debug("request | source=%s | isbn=%s", self.name, isbn)
        try:
            r = http.get(API_URL, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("request error | source=%s | isbn=%s | err=%r", self.name, isbn, e)
            return ProviderError(self.name, isbn, f"transport: {e}")
        if not r.ok:
            logger.warning("http error | source=%s | isbn=%s | status=%s", self.name, isbn, r.status_code)
            return ProviderError(self.name, isbn, f"status={r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            logger.warning("bad json | source=%s | isbn=%s | err=%r", self.name, isbn, e)
            return ProviderError(self.name, isbn, "invalid json")
        return parse_response(isbn, data)
