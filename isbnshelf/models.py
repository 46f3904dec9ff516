from dataclasses import dataclass, asdict, field
from typing import Optional, Union

UNKNOWN_AUTHOR = "Unknown author"

# Catalog JSON keys, in the order they are written.
RECORD_KEYS = ["isbn", "title", "authors", "coverUrl", "publishedYear", "read", "readBy", "owner", "addedAt"]


@dataclass(frozen=True)
class InvalidIdentifier:
    raw: str
    reason: str


@dataclass(frozen=True)
class NotFound:
    source: str
    isbn: str


@dataclass(frozen=True)
class ProviderError:
    source: str
    isbn: str
    reason: str


@dataclass(frozen=True)
class BookDraft:
    """A provider's answer, normalized but not yet a catalog record."""
    isbn: str
    title: str
    authors: tuple[str, ...] = (UNKNOWN_AUTHOR,)
    cover_url: Optional[str] = None
    published_year: Optional[int] = None
    alternate_ids: tuple[str, ...] = ()
    source: str = ""


LookupResult = Union[BookDraft, NotFound, ProviderError]


@dataclass(frozen=True)
class CatalogRecord:
    isbn: str
    title: str
    authors: tuple[str, ...]
    cover_url: str
    published_year: Optional[int] = None
    read: bool = False
    read_by: tuple[str, ...] = ()
    owner: Optional[str] = None
    added_at: str = ""

    def to_dict(self) -> dict:
        row = asdict(self)
        out = {
            "isbn": row["isbn"],
            "title": row["title"],
            "authors": list(row["authors"]),
            "coverUrl": row["cover_url"],
            "read": row["read"],
            "addedAt": row["added_at"],
        }
        if self.published_year is not None:
            out["publishedYear"] = self.published_year
        if self.read_by:
            out["readBy"] = list(self.read_by)
        if self.owner:
            out["owner"] = self.owner
        return {k: out[k] for k in RECORD_KEYS if k in out}

    @classmethod
    def from_dict(cls, data: dict) -> "CatalogRecord":
        authors = [str(a) for a in (data.get("authors") or []) if str(a).strip()]
        year = data.get("publishedYear")
        return cls(
            isbn=str(data.get("isbn", "")),
            title=str(data.get("title", "")),
            authors=tuple(authors) or (UNKNOWN_AUTHOR,),
            cover_url=str(data.get("coverUrl") or ""),
            published_year=int(year) if year not in (None, "") else None,
            read=bool(data.get("read", False)),
            read_by=tuple(str(r) for r in (data.get("readBy") or [])),
            owner=data.get("owner") or None,
            added_at=str(data.get("addedAt", "")),
        )


@dataclass
class Catalog:
    id: str
    name: str
    created_at: str
    books: list[CatalogRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "books": [b.to_dict() for b in self.books],
        }
