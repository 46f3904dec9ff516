import json
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Optional

from .models import Catalog, CatalogRecord
from .utils import utc_timestamp


class CatalogFormatError(ValueError):
    pass


def new_catalog(name: str | None = None, now: datetime | None = None) -> Catalog:
    now = now or datetime.now(timezone.utc)
    return Catalog(
        id=f"library-{int(now.timestamp() * 1000)}",
        name=(name or "").strip() or f"My Library - {now.date().isoformat()}",
        created_at=utc_timestamp(now),
    )


def find_record(catalog: Catalog, isbn: str) -> Optional[CatalogRecord]:
    for b in catalog.books:
        if b.isbn == isbn:
            return b
    return None


def add_record(catalog: Catalog, record: CatalogRecord) -> bool:
    """Append unless a record with the same ISBN is already in the catalog."""
    if find_record(catalog, record.isbn) is not None:
        return False
    catalog.books.append(record)
    return True


def update_record(catalog: Catalog, record: CatalogRecord) -> bool:
    for i, b in enumerate(catalog.books):
        if b.isbn == record.isbn:
            catalog.books[i] = record
            return True
    return False


def remove_record(catalog: Catalog, isbn: str) -> bool:
    before = len(catalog.books)
    catalog.books = [b for b in catalog.books if b.isbn != isbn]
    return len(catalog.books) != before


# --- record edits (records are frozen; these return new ones) ---

def set_read(record: CatalogRecord, read: bool) -> CatalogRecord:
    return replace(record, read=read, read_by=record.read_by if read else ())


def add_reader(record: CatalogRecord, reader: str) -> CatalogRecord:
    reader = (reader or "").strip()
    if not reader or reader in record.read_by:
        return record
    return replace(record, read_by=record.read_by + (reader,))


def remove_reader(record: CatalogRecord, reader: str) -> CatalogRecord:
    return replace(record, read_by=tuple(r for r in record.read_by if r != reader))


def set_owner(record: CatalogRecord, owner: str | None) -> CatalogRecord:
    return replace(record, owner=(owner or "").strip() or None)


# --- views ---

def filter_records(
    records: Iterable[CatalogRecord],
    query: str = "",
    read: bool | None = None,
    owner: str | None = None,
) -> list[CatalogRecord]:
    out = list(records)
    q = (query or "").strip().lower()
    if q:
        out = [
            b for b in out
            if q in b.title.lower()
            or any(q in a.lower() for a in b.authors)
            or q in b.isbn
            or (b.owner and q in b.owner.lower())
        ]
    if read is not None:
        out = [b for b in out if b.read == read]
    if owner:
        out = [b for b in out if b.owner == owner]
    return out


def owners(records: Iterable[CatalogRecord]) -> list[str]:
    return sorted({b.owner for b in records if b.owner})


# --- JSON ---

def catalog_to_json(catalog: Catalog) -> str:
    return json.dumps(catalog.to_dict(), ensure_ascii=False, indent=2)


def catalog_from_dict(data) -> Catalog:
    if not isinstance(data, dict) or not isinstance(data.get("books"), list):
        raise CatalogFormatError("Invalid library format: missing 'books' list")
    try:
        books = [CatalogRecord.from_dict(b) for b in data["books"]]
    except (AttributeError, TypeError, ValueError) as e:
        raise CatalogFormatError(f"Invalid book entry: {e}") from e
    return Catalog(
        id=str(data.get("id", "")),
        name=str(data.get("name", "")),
        created_at=str(data.get("createdAt", "")),
        books=books,
    )


def catalog_from_json(text: str | bytes) -> Catalog:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise CatalogFormatError("Could not read the JSON file") from e
    return catalog_from_dict(data)
