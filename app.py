# app.py
# isbnshelf: scan or type ISBNs, resolve them via Open Library / Google Books,
# and keep the resulting catalog in a JSON file, an S3 object or a Google Sheet.
# Requires: streamlit, pandas, requests, Pillow, zxing-cpp, boto3,
#           gspread, google-auth, gspread_dataframe
# Settings live in .streamlit/secrets.toml (see isbnshelf/config.py for the layout).

import html
import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd
import streamlit as st
from gspread.exceptions import APIError

from isbnshelf import repository
from isbnshelf.barcode import decode_isbn
from isbnshelf.catalog import (
    CatalogFormatError,
    add_reader,
    add_record,
    catalog_from_json,
    catalog_to_json,
    filter_records,
    new_catalog,
    owners,
    remove_reader,
    remove_record,
    set_owner,
    set_read,
    update_record,
)
from isbnshelf.config import ConfigError, ShelfConfig
from isbnshelf.models import Catalog, CatalogRecord
from isbnshelf.services import BookLookupService
from isbnshelf.storage import (
    StorageError,
    load_catalog,
    load_catalog_from_s3,
    save_catalog,
    save_catalog_to_s3,
    suggested_filename,
)
from isbnshelf.utils import safe_url

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")
logger = logging.getLogger("isbnshelf.app")

NOT_FOUND_MSG = "Book not found. Check that the ISBN is correct."

# ==========================================
# App config
# ==========================================
st.set_page_config(page_title="isbnshelf", page_icon="📚", layout="wide")

try:
    CONFIG = ShelfConfig.from_secrets(st.secrets)
    CONFIG.validate()
except ConfigError as e:
    st.error(str(e))
    st.stop()


@st.cache_resource
def get_service() -> BookLookupService:
    return BookLookupService(google_api_key=CONFIG.google_api_key, timeout=CONFIG.timeout)


# ==========================================
# Storage backends
# ==========================================

def load_current() -> Catalog:
    if CONFIG.backend == "sheets":
        books = repository.read_records(CONFIG.sheet_name, CONFIG.worksheet)
        return Catalog(id=f"sheet-{CONFIG.sheet_name}", name=CONFIG.sheet_name, created_at="", books=books)
    if CONFIG.backend == "s3":
        try:
            return load_catalog_from_s3(
                CONFIG.s3_bucket, CONFIG.s3_key, CONFIG.s3_region,
                CONFIG.s3_access_key_id, CONFIG.s3_secret_access_key,
            )
        except StorageError as e:
            st.warning(f"{e}. Starting a new library.")
            return new_catalog()
    if Path(CONFIG.path).expanduser().exists():
        try:
            return load_catalog(CONFIG.path)
        except (StorageError, CatalogFormatError) as e:
            st.warning(f"{e}. Starting a new library.")
    return new_catalog()


def persist(catalog: Catalog, added: Optional[CatalogRecord] = None):
    try:
        if CONFIG.backend == "sheets":
            if added is not None:
                repository.append_record(CONFIG.sheet_name, CONFIG.worksheet, added)
            else:
                repository.write_records(CONFIG.sheet_name, CONFIG.worksheet, catalog.books)
        elif CONFIG.backend == "s3":
            save_catalog_to_s3(
                catalog, CONFIG.s3_bucket, CONFIG.s3_key, CONFIG.s3_region,
                CONFIG.s3_access_key_id, CONFIG.s3_secret_access_key,
            )
        else:
            save_catalog(catalog, CONFIG.path)
    except StorageError as e:
        st.error(str(e))
    except APIError as e:
        logger.error("sheets save failed | sheet=%s | err=%r", CONFIG.sheet_name, e)
        st.error("Could not save to Google Sheets. The change is kept for this session only.")


if "catalog" not in st.session_state:
    st.session_state.catalog = load_current()

catalog: Catalog = st.session_state.catalog


def add_to_catalog(record: Optional[CatalogRecord]) -> bool:
    if record is None:
        st.warning(NOT_FOUND_MSG)
        return False
    if not add_record(catalog, record):
        st.info(f"“{record.title}” is already in your library.")
        return False
    persist(catalog, added=record)
    logger.info("added | isbn=%s | title=%r", record.isbn, record.title)
    st.success(f"Added “{record.title}”")
    return True


def cover_html(url: Optional[str], width: int = 120) -> str:
    u = safe_url(url)
    if not u:
        return ""
    return f'<img src="{html.escape(u, quote=True)}" width="{width}" style="border-radius:6px"/>'


# ==========================================
# UI
# ==========================================

st.title("📚 isbnshelf")
new_name = st.text_input("Library name", value=catalog.name)
if new_name.strip() and new_name.strip() != catalog.name:
    catalog.name = new_name.strip()
    persist(catalog)

# -----------------------------
# SECTION 1 — Scan / type an ISBN
# -----------------------------
with st.expander("📷 Add a book", expanded=True):
    c1, c2 = st.columns(2)
    with c1:
        st.caption("Take a photo of the barcode on the back cover")
        shot = st.camera_input("Barcode", label_visibility="collapsed")
        if shot is not None:
            isbn = decode_isbn(shot.getvalue())
            if not isbn:
                st.warning("No ISBN barcode found in the photo. Try again closer, or type the ISBN.")
            else:
                st.caption(f"ISBN detected: {isbn}")
                with st.spinner("Looking up…"):
                    add_to_catalog(get_service().resolve(isbn))
    with c2:
        manual = st.text_input("ISBN", placeholder="978-2-07-036822-8", key="manual_isbn")
        if st.button("Look up", type="primary", disabled=not manual.strip()):
            with st.spinner("Looking up…"):
                add_to_catalog(get_service().resolve(manual))

# -----------------------------
# SECTION 2 — Batch import
# -----------------------------
with st.expander("📥 Batch import", expanded=False):
    raw_batch = st.text_area("One ISBN per line", key="batch_isbns")
    if st.button("Import all", key="btn_batch"):
        lines = [l.strip() for l in raw_batch.splitlines() if l.strip()]
        with st.spinner(f"Resolving {len(lines)} ISBNs…"):
            results = get_service().resolve_many(lines)
        added, missing = 0, []
        for raw, record in zip(lines, results):
            if record is None:
                missing.append(raw)
            elif add_record(catalog, record):
                added += 1
        if added:
            persist(catalog)
        st.success(f"Added {added} book(s).")
        if missing:
            st.warning("Not found: " + ", ".join(missing))

# -----------------------------
# SECTION 3 — Import / export
# -----------------------------
with st.expander("💾 Import / export", expanded=False):
    st.download_button(
        "⬇️ Export JSON",
        data=catalog_to_json(catalog),
        file_name=suggested_filename(catalog),
        mime="application/json",
    )
    uploaded = st.file_uploader("Import a library file", type=["json"])
    if uploaded is not None and st.button("Replace current library with this file"):
        try:
            st.session_state.catalog = catalog_from_json(uploaded.getvalue())
        except CatalogFormatError as e:
            st.error(str(e))
        else:
            persist(st.session_state.catalog)
            st.rerun()

    st.markdown("### Amazon S3")
    s1, s2, s3 = st.columns(3)
    with s1:
        s3_bucket = st.text_input("Bucket", value=CONFIG.s3_bucket or "")
        s3_key = st.text_input("Key", value=CONFIG.s3_key)
    with s2:
        s3_region = st.text_input("Region", value=CONFIG.s3_region)
    with s3:
        s3_access = st.text_input("Access key id (optional)", value="")
        s3_secret = st.text_input("Secret access key (optional)", value="", type="password")
    if st.button("Import from S3", disabled=not (s3_bucket.strip() and s3_key.strip())):
        try:
            st.session_state.catalog = load_catalog_from_s3(
                s3_bucket.strip(), s3_key.strip(), s3_region.strip() or "us-east-1",
                s3_access.strip() or None, s3_secret.strip() or None,
            )
        except StorageError as e:
            st.error(str(e))
        else:
            persist(st.session_state.catalog)
            st.rerun()

# ==========================================
# Library view
# ==========================================

st.divider()
st.subheader(f"📖 {catalog.name}")

left, mid, right = st.columns([3, 1, 1])
with left:
    f_query = st.text_input("Filter", placeholder="Search title/author/isbn/owner")
with mid:
    f_read = st.selectbox("Read", options=["All", "Read", "Unread"], index=0)
with right:
    owner_opts = ["All"] + owners(catalog.books)
    f_owner = st.selectbox("Owner", options=owner_opts, index=0)

view = st.radio("View", options=["List", "Grid"], index=0, horizontal=True)

shown = filter_records(
    catalog.books,
    query=f_query,
    read={"All": None, "Read": True, "Unread": False}[f_read],
    owner=None if f_owner == "All" else f_owner,
)
st.caption(f"{len(shown)} of {len(catalog.books)} book(s) shown")

_todelete: List[str] = []
_changed: List[CatalogRecord] = []


def subtitle(book: CatalogRecord) -> str:
    bits = [", ".join(book.authors)]
    if book.published_year:
        bits.append(str(book.published_year))
    if book.owner:
        bits.append(f"owner: {book.owner}")
    return " · ".join(bits)


def edit_controls(book: CatalogRecord):
    k = book.isbn
    updated = book
    read = st.checkbox("Read", value=book.read, key=f"read_{k}")
    if read != book.read:
        updated = set_read(updated, read)
    if updated.read:
        for r in updated.read_by:
            rc1, rc2 = st.columns([4, 1])
            rc1.caption(f"📖 {r}")
            if rc2.button("✕", key=f"rmr_{k}_{r}"):
                updated = remove_reader(updated, r)
        reader = st.text_input("Add reader", key=f"reader_{k}")
        if st.button("Add", key=f"addr_{k}") and reader.strip():
            updated = add_reader(updated, reader)
    owner = st.text_input("Owner", value=book.owner or "", key=f"owner_{k}")
    if (owner.strip() or None) != book.owner:
        updated = set_owner(updated, owner)
    if updated != book:
        _changed.append(updated)
    if st.button("Delete", key=f"del_{k}"):
        _todelete.append(k)


if not shown:
    st.info("No books match." if catalog.books else "Your library is empty. Scan a book to get started.")
elif view == "Grid":
    cols_count = st.slider("Grid columns", 3, 8, 5, key="library_cols")
    for i in range(0, len(shown), cols_count):
        row_items = shown[i:i + cols_count]
        cols = st.columns(len(row_items))
        for col, book in zip(cols, row_items):
            with col:
                with st.container(border=True):
                    st.markdown(cover_html(book.cover_url, width=140), unsafe_allow_html=True)
                    st.markdown(f"**{book.title}**")
                    st.caption(subtitle(book))
                    with st.popover("Edit"):
                        edit_controls(book)
else:
    for book in shown:
        box = st.container(border=True)
        cols = box.columns([1, 5, 2])
        with cols[0]:
            st.markdown(cover_html(book.cover_url, width=90), unsafe_allow_html=True)
        with cols[1]:
            st.markdown(f"**{book.title}**")
            st.caption(subtitle(book))
            st.caption(f"ISBN: {book.isbn}" + (" · read by " + ", ".join(book.read_by) if book.read_by else ""))
        with cols[2]:
            with st.popover("Edit"):
                edit_controls(book)

if _changed or _todelete:
    for rec in _changed:
        update_record(catalog, rec)
    for isbn in _todelete:
        remove_record(catalog, isbn)
    persist(catalog)
    st.rerun()

if catalog.books:
    df = pd.DataFrame([b.to_dict() for b in shown])
    st.download_button(
        "⬇️ Export CSV",
        data=df.drop(columns=["coverUrl"], errors="ignore").to_csv(index=False),
        file_name="books.csv",
        mime="text/csv",
    )
