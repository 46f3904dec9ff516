import logging
from typing import Optional

import requests

from ..models import UNKNOWN_AUTHOR, BookDraft, LookupResult, NotFound, ProviderError
from ..utils import extract_year

logger = logging.getLogger(__name__)

API_URL = "https://www.googleapis.com/books/v1/volumes"
COVER_SIZES = ("extraLarge", "large", "medium", "small", "thumbnail", "smallThumbnail")


def best_cover_link(image_links: dict) -> Optional[str]:
    links = image_links if isinstance(image_links, dict) else {}
    for key in COVER_SIZES:
        url = links.get(key)
        if isinstance(url, str) and url.strip():
            url = url.strip().replace("http://", "https://")
            if key in ("thumbnail", "smallThumbnail"):
                url = url.replace("zoom=1", "zoom=2")
            return url
    return None


def _identifiers(info: dict) -> tuple[str, ...]:
    raw = info.get("industryIdentifiers")
    if not isinstance(raw, list):
        return ()
    out = []
    for ident in raw:
        if not isinstance(ident, dict):
            continue
        v = str(ident.get("identifier") or "").strip()
        if ident.get("type") in ("ISBN_13", "ISBN_10") and v:
            out.append(v)
    return tuple(out)


def parse_response(isbn: str, data) -> LookupResult:
    if not isinstance(data, dict):
        return ProviderError(GoogleBooksProvider.name, isbn, "payload is not an object")
    items = data.get("items") or []
    if not isinstance(items, list):
        return ProviderError(GoogleBooksProvider.name, isbn, "items is not a list")
    if not items:
        return NotFound(GoogleBooksProvider.name, isbn)
    if not isinstance(items[0], dict):
        return ProviderError(GoogleBooksProvider.name, isbn, "item is not an object")
    info = items[0].get("volumeInfo")
    if info is None:
        return NotFound(GoogleBooksProvider.name, isbn)
    if not isinstance(info, dict):
        return ProviderError(GoogleBooksProvider.name, isbn, "volumeInfo is not an object")
    title = info.get("title")
    if not isinstance(title, str) or not title.strip():
        return NotFound(GoogleBooksProvider.name, isbn)
    raw_authors = info.get("authors")
    if not isinstance(raw_authors, list):
        raw_authors = []
    authors = [a.strip() for a in raw_authors if isinstance(a, str) and a.strip()]
    published = info.get("publishedDate")
    return BookDraft(
        isbn=isbn,
        title=title.strip(),
        authors=tuple(authors) or (UNKNOWN_AUTHOR,),
        cover_url=best_cover_link(info.get("imageLinks") or {}),
        published_year=extract_year(published if isinstance(published, str) else None),
        alternate_ids=_identifiers(info),
        source=GoogleBooksProvider.name,
    )


class GoogleBooksProvider:
    name = "google"

    def __init__(self, api_key: Optional[str] = None, timeout: float = 10, session: requests.Session | None = None):
        self.api_key = api_key or None
        self.timeout = timeout
        self.session = session

    def lookup(self, isbn: str) -> LookupResult:
        http = self.session or requests
        params = {"q": f"isbn:{isbn}", "maxResults": 1, "printType": "books"}
        if self.api_key:
            params["key"] = self.api_key
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
