# isbnshelf/repository.py
# Google Sheets backend: one worksheet row per CatalogRecord.
import json
import logging
import math
import time
from typing import List

import gspread
import pandas as pd
import streamlit as st
from google.oauth2.service_account import Credentials
from gspread.exceptions import APIError
from gspread_dataframe import get_as_dataframe

from .models import UNKNOWN_AUTHOR, CatalogRecord

logger = logging.getLogger(__name__)

SCOPE_SHEETS = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

HEADERS = ["isbn", "title", "authors", "cover_url", "published_year", "read", "read_by", "owner", "added_at"]
# List cells hold a JSON array so names containing ";" survive a round trip.
# Older sheets with "; "-separated cells are still read.
LEGACY_SEP = ";"

# RAW keeps ISBNs with leading zeros as text and stops titles starting with "=" becoming formulas.
VALUE_INPUT = "RAW"


def _to_native(value):
    """Make a cell value JSON-serializable for the Sheets API."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        # numpy scalars
        return value.item()
    return value


def _to_native_row(values):
    return [_to_native(v) for v in values]


def _to_native_2d(values_2d):
    return [[_to_native(v) for v in row] for row in values_2d]


@st.cache_resource
def _ws(sheet_name: str, worksheet: str):
    creds = Credentials.from_service_account_info(dict(st.secrets["gcp_service_account"]), scopes=SCOPE_SHEETS)
    gc = gspread.authorize(creds)
    sh = gc.open(sheet_name)
    try:
        ws = sh.worksheet(worksheet)
    except gspread.WorksheetNotFound:
        ws = sh.add_worksheet(worksheet, rows=1000, cols=len(HEADERS))
        _safe_update(ws, "A1", [HEADERS])
        logger.info("created worksheet | sheet=%s | worksheet=%s", sheet_name, worksheet)
    return ws


def _with_backoff(call, retries: int):
    for attempt in range(retries):
        try:
            return call()
        except APIError as e:
            if "Quota exceeded" in str(e) and attempt < retries - 1:
                logger.warning("sheets quota | attempt=%s/%s | sleeping=%ss", attempt + 1, retries, 2 ** attempt)
                time.sleep(2 ** attempt)  # 1s, 2s, 4s, 8s, ...
                continue
            raise


def _safe_update(ws, range_name, values, retries: int = 5):
    values = _to_native_2d(values)
    return _with_backoff(lambda: ws.update(range_name=range_name, values=values, value_input_option=VALUE_INPUT), retries)


def _safe_append_row(ws, values, retries: int = 5):
    values = _to_native_row(values)
    return _with_backoff(lambda: ws.append_row(values, value_input_option=VALUE_INPUT), retries)


def _normalize(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        df = pd.DataFrame(columns=HEADERS)
    for col in HEADERS:
        if col not in df.columns:
            df[col] = ""
    df = df.copy()
    df["published_year"] = pd.to_numeric(df["published_year"], errors="coerce").fillna(0).astype(int)
    df["read"] = df["read"].astype("string").fillna("").str.strip().str.upper().isin(["TRUE", "1"])
    for c in [c for c in HEADERS if c not in ("published_year", "read")]:
        df[c] = df[c].astype("string").fillna("").replace("nan", "")
    df = df[df["isbn"].str.strip() != ""]
    return df[HEADERS].reset_index(drop=True)


def record_to_row(record: CatalogRecord) -> list:
    return [
        record.isbn,
        record.title,
        _join(record.authors),
        record.cover_url,
        record.published_year or "",
        bool(record.read),
        _join(record.read_by),
        record.owner or "",
        record.added_at,
    ]


def _join(values) -> str:
    return json.dumps(list(values), ensure_ascii=False) if values else ""


def _split(cell: str) -> tuple[str, ...]:
    cell = (cell or "").strip()
    if cell.startswith("["):
        try:
            parsed = json.loads(cell)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return tuple(str(p).strip() for p in parsed if str(p).strip())
    return tuple(p.strip() for p in cell.split(LEGACY_SEP) if p.strip())


def records_from_frame(df: pd.DataFrame) -> List[CatalogRecord]:
    df = _normalize(df)
    out = []
    for row in df.to_dict(orient="records"):
        out.append(CatalogRecord(
            isbn=row["isbn"].strip(),
            title=row["title"],
            authors=_split(row["authors"]) or (UNKNOWN_AUTHOR,),
            cover_url=row["cover_url"],
            published_year=int(row["published_year"]) or None,
            read=bool(row["read"]),
            read_by=_split(row["read_by"]),
            owner=row["owner"] or None,
            added_at=row["added_at"],
        ))
    return out


def records_to_values(records: List[CatalogRecord]) -> list[list]:
    return _to_native_2d([HEADERS] + [record_to_row(r) for r in records])


def read_records(sheet_name: str, worksheet: str) -> List[CatalogRecord]:
    df = get_as_dataframe(_ws(sheet_name, worksheet), header=0, dtype=str, evaluate_formulas=False).dropna(how="all")
    return records_from_frame(df)


def write_records(sheet_name: str, worksheet: str, records: List[CatalogRecord]):
    """Overwrite the sheet in a single update, shrinking it to fit."""
    ws = _ws(sheet_name, worksheet)
    values = records_to_values(records)
    try:
        ws.resize(rows=len(values), cols=len(HEADERS))
    except APIError as e:
        # Old trailing rows stay visible but the data is still written.
        logger.warning("sheets resize failed | err=%r", e)
    _safe_update(ws, "A1", values)
    logger.info("wrote sheet | sheet=%s | worksheet=%s | rows=%s", sheet_name, worksheet, len(records))


def append_record(sheet_name: str, worksheet: str, record: CatalogRecord) -> bool:
    """Append one row (1 API write). Returns False when the ISBN is already present."""
    ws = _ws(sheet_name, worksheet)
    existing = {r.isbn for r in read_records(sheet_name, worksheet)}
    if record.isbn in existing:
        return False
    if ws.row_count == 0:
        _safe_update(ws, "A1", [HEADERS])
    _safe_append_row(ws, record_to_row(record))
    return True
