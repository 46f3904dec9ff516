import requests

from isbnshelf.lookups.google_books import GoogleBooksProvider, best_cover_link
from isbnshelf.lookups.openlibrary import OpenLibraryProvider
from isbnshelf.models import UNKNOWN_AUTHOR, BookDraft, NotFound, ProviderError


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, bad_json: bool = False):
        self.payload = payload
        self.status_code = status_code
        self.bad_json = bad_json

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self.bad_json:
            raise ValueError("Expecting value")
        return self.payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.exc is not None:
            raise self.exc
        return self.response


OL_ISBN = "9782070368228"


def _ol(payload, **kw) -> tuple[OpenLibraryProvider, FakeSession]:
    session = FakeSession(FakeResponse(payload, **kw))
    return OpenLibraryProvider(timeout=3, session=session), session


def test_openlibrary_full_record() -> None:
    provider, session = _ol({
        f"ISBN:{OL_ISBN}": {
            "title": "Le Petit Prince",
            "authors": [{"name": "Antoine de Saint-Exupéry"}],
            "cover": {"small": "https://c/s.jpg", "medium": "https://c/m.jpg", "large": "https://c/l.jpg"},
            "publish_date": "March 1999",
        }
    })
    draft = provider.lookup(OL_ISBN)

    assert isinstance(draft, BookDraft)
    assert draft.isbn == OL_ISBN
    assert draft.title == "Le Petit Prince"
    assert draft.authors == ("Antoine de Saint-Exupéry",)
    assert draft.cover_url == "https://c/l.jpg"
    assert draft.published_year == 1999
    assert draft.source == "openlibrary"

    url, params, timeout = session.calls[0]
    assert url == "https://openlibrary.org/api/books"
    assert params == {"bibkeys": f"ISBN:{OL_ISBN}", "format": "json", "jscmd": "data"}
    assert timeout == 3


def test_openlibrary_cover_falls_back_to_smaller_sizes() -> None:
    provider, _ = _ol({f"ISBN:{OL_ISBN}": {"title": "T", "cover": {"small": "https://c/s.jpg", "medium": "https://c/m.jpg"}}})
    assert provider.lookup(OL_ISBN).cover_url == "https://c/m.jpg"


def test_openlibrary_defaults() -> None:
    provider, _ = _ol({f"ISBN:{OL_ISBN}": {"title": "T", "authors": []}})
    draft = provider.lookup(OL_ISBN)
    assert draft.authors == (UNKNOWN_AUTHOR,)
    assert draft.cover_url is None
    assert draft.published_year is None


def test_openlibrary_not_found_cases() -> None:
    for payload in [{}, {f"ISBN:{OL_ISBN}": {"authors": [{"name": "X"}]}}, {f"ISBN:{OL_ISBN}": {"title": "  "}}]:
        provider, _ = _ol(payload)
        assert isinstance(provider.lookup(OL_ISBN), NotFound)


def test_openlibrary_errors_are_values() -> None:
    provider, _ = _ol(None, status_code=503)
    assert isinstance(provider.lookup(OL_ISBN), ProviderError)

    provider, _ = _ol(None, bad_json=True)
    assert isinstance(provider.lookup(OL_ISBN), ProviderError)

    provider, _ = _ol(["not", "a", "mapping"])
    assert isinstance(provider.lookup(OL_ISBN), ProviderError)

    provider = OpenLibraryProvider(session=FakeSession(exc=requests.ConnectionError("offline")))
    result = provider.lookup(OL_ISBN)
    assert isinstance(result, ProviderError)
    assert "offline" in result.reason


def _gb(payload, api_key=None, **kw) -> tuple[GoogleBooksProvider, FakeSession]:
    session = FakeSession(FakeResponse(payload, **kw))
    return GoogleBooksProvider(api_key=api_key, session=session), session


def test_google_books_full_record() -> None:
    provider, session = _gb({
        "items": [{
            "volumeInfo": {
                "title": "Dune",
                "authors": ["Frank Herbert"],
                "publishedDate": "2005-08-02",
                "imageLinks": {
                    "smallThumbnail": "http://books.google.com/c?id=1&zoom=5",
                    "thumbnail": "http://books.google.com/c?id=1&zoom=1",
                },
                "industryIdentifiers": [
                    {"type": "ISBN_10", "identifier": "0441013597"},
                    {"type": "ISBN_13", "identifier": "9780441013593"},
                    {"type": "OTHER", "identifier": "X:1"},
                ],
            }
        }]
    }, api_key="k")
    draft = provider.lookup("9780441013593")

    assert isinstance(draft, BookDraft)
    assert draft.title == "Dune"
    assert draft.authors == ("Frank Herbert",)
    assert draft.published_year == 2005
    assert draft.cover_url == "https://books.google.com/c?id=1&zoom=2"
    assert draft.alternate_ids == ("0441013597", "9780441013593")
    assert draft.source == "google"

    url, params, _ = session.calls[0]
    assert url == "https://www.googleapis.com/books/v1/volumes"
    assert params["q"] == "isbn:9780441013593"
    assert params["key"] == "k"


def test_google_books_without_key_sends_no_key() -> None:
    provider, session = _gb({"items": []})
    assert isinstance(provider.lookup("0000000000"), NotFound)
    assert "key" not in session.calls[0][1]


def test_google_books_cover_preference() -> None:
    assert best_cover_link({"thumbnail": "https://t", "large": "https://l", "medium": "https://m"}) == "https://l"
    assert best_cover_link({"smallThumbnail": "http://s?zoom=1"}) == "https://s?zoom=2"
    assert best_cover_link({}) is None


def test_google_books_not_found_and_errors() -> None:
    for payload in [{}, {"items": []}, {"items": [{"volumeInfo": {"authors": ["X"]}}]}, {"items": [{}]}]:
        provider, _ = _gb(payload)
        assert isinstance(provider.lookup("0000000000"), NotFound)

    provider, _ = _gb(None, status_code=429)
    assert isinstance(provider.lookup("0000000000"), ProviderError)

    provider, _ = _gb({"items": "oops"})
    assert isinstance(provider.lookup("0000000000"), ProviderError)

    for payload in [{"items": ["oops"]}, {"items": [{"volumeInfo": "oops"}]}, {"items": [{"volumeInfo": [1]}]}]:
        provider, _ = _gb(payload)
        assert isinstance(provider.lookup("0000000000"), ProviderError)

    provider = GoogleBooksProvider(session=FakeSession(exc=requests.Timeout("slow")))
    assert isinstance(provider.lookup("0000000000"), ProviderError)


def test_google_books_ignores_non_list_identifiers() -> None:
    for bad in [5, True, "9780441013593", {"type": "ISBN_13"}]:
        provider, _ = _gb({"items": [{"volumeInfo": {"title": "T", "industryIdentifiers": bad}}]})
        draft = provider.lookup("0000000000")
        assert isinstance(draft, BookDraft)
        assert draft.alternate_ids == ()


def test_google_books_missing_authors_defaults() -> None:
    provider, _ = _gb({"items": [{"volumeInfo": {"title": "Anon"}}]})
    assert provider.lookup("0000000000").authors == (UNKNOWN_AUTHOR,)
