from datetime import datetime, timezone

import requests

from isbnshelf.covers import generate_cover
from isbnshelf.lookups.openlibrary import OpenLibraryProvider
from isbnshelf.models import UNKNOWN_AUTHOR, BookDraft, NotFound, ProviderError
from isbnshelf.services import BookLookupService

FIXED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class FakeProvider:
    def __init__(self, name: str, calls: list, results: dict | None = None):
        self.name = name
        self.calls = calls
        self.results = results or {}

    def lookup(self, isbn: str):
        self.calls.append((self.name, isbn))
        result = self.results.get(isbn)
        if isinstance(result, Exception):
            raise result
        return result or NotFound(self.name, isbn)


def _service(a: dict | None = None, b: dict | None = None):
    calls: list = []
    providers = [FakeProvider("A", calls, a), FakeProvider("B", calls, b)]
    return BookLookupService(providers=providers, clock=lambda: FIXED), calls


def test_primary_hit_without_cover_gets_generated_cover() -> None:
    isbn = "9782070368228"
    draft = BookDraft(isbn=isbn, title="Le Petit Prince", authors=("Antoine de Saint-Exupéry",), source="A")
    service, calls = _service(a={isbn: draft})

    record = service.resolve(isbn)

    assert record is not None
    assert record.isbn == "9782070368228"
    assert record.title == "Le Petit Prince"
    assert record.cover_url.startswith("data:image/svg+xml")
    assert record.cover_url == generate_cover("Le Petit Prince", "Antoine de Saint-Exupéry")
    assert record.read is False
    assert record.added_at == "2024-01-02T03:04:05.000Z"
    assert calls == [("A", isbn)]


def test_provider_cover_is_kept() -> None:
    isbn = "0306406152"
    draft = BookDraft(isbn=isbn, title="T", cover_url="https://c/l.jpg", published_year=1999)
    service, _ = _service(b={isbn: draft})
    record = service.resolve(isbn)
    assert record.cover_url == "https://c/l.jpg"
    assert record.published_year == 1999


def test_ten_digit_not_found_returns_none_without_fallback() -> None:
    service, calls = _service()
    assert service.resolve("0000000000") is None
    assert calls == [("A", "0000000000"), ("B", "0000000000")]


def test_hyphenated_input_is_normalized_before_any_call() -> None:
    service, calls = _service()
    service.resolve("978-2-07-036822-8")
    assert calls[0] == ("A", "9782070368228")


def test_primary_error_falls_through_to_secondary() -> None:
    isbn = "9780441013593"
    draft = BookDraft(isbn=isbn, title="Dune", authors=("Frank Herbert",), source="B")
    service, calls = _service(a={isbn: requests.ConnectionError("network down")}, b={isbn: draft})

    record = service.resolve(isbn)

    assert record is not None
    assert record.title == "Dune"
    assert calls == [("A", isbn), ("B", isbn)]


def test_provider_error_value_is_treated_as_not_found() -> None:
    isbn = "9780441013593"
    draft = BookDraft(isbn=isbn, title="Dune")
    service, _ = _service(a={isbn: ProviderError("A", isbn, "status=500")}, b={isbn: draft})
    assert service.resolve(isbn).title == "Dune"


def test_978_fallback_tries_both_providers_with_derived_identifier() -> None:
    service, calls = _service()
    assert service.resolve("9782070368228") is None
    assert calls == [
        ("A", "9782070368228"),
        ("B", "9782070368228"),
        ("A", "207036822"),
        ("B", "207036822"),
    ]


def test_fallback_hit_keeps_the_resolved_identifier() -> None:
    draft = BookDraft(isbn="207036822", title="Le Petit Prince")
    service, calls = _service(b={"207036822": draft})
    record = service.resolve("9782070368228")
    assert record.isbn == "207036822"
    assert len(calls) == 4


def test_no_fallback_for_979_prefix() -> None:
    service, calls = _service()
    assert service.resolve("9791032305690") is None
    assert len(calls) == 2


def test_invalid_identifier_makes_no_calls() -> None:
    service, calls = _service()
    for raw in ["hello", "", "12345", "978-2-07"]:
        assert service.resolve(raw) is None
    assert calls == []


def test_untitled_draft_counts_as_not_found() -> None:
    isbn = "0306406152"
    service, calls = _service(a={isbn: BookDraft(isbn=isbn, title="")}, b={isbn: BookDraft(isbn=isbn, title="Real")})
    assert service.resolve(isbn).title == "Real"
    assert calls == [("A", isbn), ("B", isbn)]


def test_resolve_many_keeps_input_order() -> None:
    found = {
        "0306406152": BookDraft(isbn="0306406152", title="One"),
        "9780441013593": BookDraft(isbn="9780441013593", title="Two"),
    }
    service, _ = _service(a=found)
    out = service.resolve_many(["0306406152", "bad", "9780441013593", "0000000000"], max_workers=3)
    assert [r.title if r else None for r in out] == ["One", None, "Two", None]
    assert service.resolve_many([]) == []


def test_default_providers_order() -> None:
    service = BookLookupService(google_api_key="k", timeout=5)
    assert [p.name for p in service.providers] == ["openlibrary", "google"]
    assert service.providers[1].api_key == "k"
    assert service.providers[0].timeout == 5


def test_generated_cover_uses_first_of_several_authors() -> None:
    isbn = "0306406152"
    draft = BookDraft(isbn=isbn, title="Good Omens", authors=("Terry Pratchett", "Neil Gaiman"))
    service, _ = _service(a={isbn: draft})
    record = service.resolve(isbn)
    assert record.authors == ("Terry Pratchett", "Neil Gaiman")
    assert record.cover_url == generate_cover("Good Omens", "Terry Pratchett")


def test_empty_authors_are_finished_as_unknown() -> None:
    isbn = "0306406152"
    service, _ = _service(a={isbn: BookDraft(isbn=isbn, title="Anon", authors=())})
    record = service.resolve(isbn)
    assert record.authors == (UNKNOWN_AUTHOR,)
    assert record.cover_url == generate_cover("Anon", UNKNOWN_AUTHOR)


def test_lone_surrogate_title_resolves_to_none() -> None:
    isbn = "0306406152"
    bad = BookDraft(isbn=isbn, title="Bad \ud800 title")
    service, _ = _service(a={isbn: bad})
    assert service.resolve(isbn) is None

    with_cover = BookDraft(isbn=isbn, title="Bad \ud800 title", cover_url="https://c/l.jpg")
    service, _ = _service(a={isbn: with_cover})
    assert service.resolve(isbn) is None


def test_unencodable_record_does_not_break_the_batch() -> None:
    found = {
        "0306406152": BookDraft(isbn="0306406152", title="Bad \ud800 title"),
        "9780441013593": BookDraft(isbn="9780441013593", title="Dune"),
    }
    service, _ = _service(a=found)
    out = service.resolve_many(["0306406152", "9780441013593"])
    assert [r.title if r else None for r in out] == [None, "Dune"]


def test_openlibrary_surrogate_title_end_to_end() -> None:
    isbn = "0306406152"

    class Response:
        ok = True
        status_code = 200

        def json(self):
            return {f"ISBN:{isbn}": {"title": "Bad \ud800 title"}}

    class Session:
        def get(self, url, params=None, timeout=None):
            return Response()

    service = BookLookupService(providers=[OpenLibraryProvider(session=Session())], clock=lambda: FIXED)
    assert service.resolve(isbn) is None
