import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol, Sequence

from .covers import generate_cover
from .lookups.google_books import GoogleBooksProvider
from .lookups.openlibrary import OpenLibraryProvider
from .models import UNKNOWN_AUTHOR, BookDraft, CatalogRecord, InvalidIdentifier, LookupResult, ProviderError
from .utils import derive_isbn10, normalize_isbn, utc_timestamp

logger = logging.getLogger(__name__)


class Provider(Protocol):
    name: str

    def lookup(self, isbn: str) -> LookupResult: ...


class BookLookupService:
    """
    Turns raw scanned/typed text into a finished CatalogRecord.

    Providers are tried in order, then once more with the shortened ISBN-10 form
    of a 978-prefixed ISBN-13. Provider failures only move resolution to the next
    attempt; callers see a record or None.
    """

    def __init__(
        self,
        google_api_key: str | None = None,
        timeout: float = 10,
        providers: Sequence[Provider] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        if providers is None:
            providers = [
                OpenLibraryProvider(timeout=timeout),
                GoogleBooksProvider(api_key=google_api_key, timeout=timeout),
            ]
        self.providers = list(providers)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _attempt(self, provider: Provider, isbn: str) -> LookupResult:
        try:
            return provider.lookup(isbn)
        except Exception as e:
            logger.warning("provider raised | source=%s | isbn=%s | err=%r", provider.name, isbn, e)
            return ProviderError(provider.name, isbn, repr(e))

    def first_draft(self, isbn: str) -> Optional[BookDraft]:
        for provider in self.providers:
            result = self._attempt(provider, isbn)
            if isinstance(result, BookDraft) and result.title:
                logger.info("found | source=%s | isbn=%s", provider.name, isbn)
                return result if result.isbn == isbn else replace(result, isbn=isbn)
            if isinstance(result, ProviderError):
                logger.info("degraded | source=%s | isbn=%s | reason=%s", provider.name, isbn, result.reason)
            else:
                logger.debug("not found | source=%s | isbn=%s", provider.name, isbn)
        return None

    def finish(self, draft: BookDraft) -> CatalogRecord:
        authors = draft.authors or (UNKNOWN_AUTHOR,)
        # Lone surrogates (from "\ud800"-style JSON escapes) can't be saved or put in a cover URI.
        for text in (draft.title, *authors):
            text.encode("utf-8")
        cover = draft.cover_url or generate_cover(draft.title, authors[0])
        return CatalogRecord(
            isbn=draft.isbn,
            title=draft.title,
            authors=authors,
            cover_url=cover,
            published_year=draft.published_year,
            read=False,
            added_at=utc_timestamp(self.clock()),
        )

    def resolve(self, raw: str) -> Optional[CatalogRecord]:
        isbn = normalize_isbn(raw)
        if isinstance(isbn, InvalidIdentifier):
            logger.info("invalid identifier | raw=%r | reason=%s", isbn.raw, isbn.reason)
            return None

        draft = self.first_draft(isbn)
        if draft is None:
            isbn10 = derive_isbn10(isbn)
            if isbn10:
                logger.info("retrying as isbn-10 | isbn=%s | fallback=%s", isbn, isbn10)
                draft = self.first_draft(isbn10)

        if draft is None:
            logger.warning("book not found | isbn=%s", isbn)
            return None
        try:
            return self.finish(draft)
        except UnicodeEncodeError as e:
            logger.warning("unencodable record | isbn=%s | err=%r", draft.isbn, e)
            return None

    def resolve_many(self, raws: Iterable[str], max_workers: int = 4) -> list[Optional[CatalogRecord]]:
        raws = list(raws)
        if not raws:
            return []
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(raws)))) as pool:
            return list(pool.map(self.resolve, raws))
