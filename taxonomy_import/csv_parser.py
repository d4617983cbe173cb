"""
taxonomy_import.csv_parser - CSV → row dicts.

Responsibilities:
  • BOM removal; cp1252 fallback for non-UTF-8 spreadsheet exports
  • Header whitespace stripping
  • Mapping data lines to {name, parent, description, ...} rows for the
    selected import mode
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Iterator, Optional

from taxonomy_import.errors import SourceError
from taxonomy_import.field_map import (
    CITY_FIELDS, CITY_GEO_FIELD, CITY_LAT_COL, CITY_LNG_COL, CITY_NAME_COL,
    CITY_PROVINCE_COL, IMPORT_MODES, MODE_CANADIAN_CITIES, STANDARD_FIXED_COLUMNS,
)
from taxonomy_import.values import as_geopoint

logger = logging.getLogger(__name__)


def prepare_reader(raw: str | bytes) -> Optional[tuple[list[str], Iterator[list[str]]]]:
    """
    Accept raw file content (bytes or str), clean it, and return
    (headers, reader).  Returns None if content is empty or headerless.
    """
    text = _decode(raw)
    if not text or not text.strip():
        return None

    reader = csv.reader(io.StringIO(text))
    headers = next(reader, None)
    if not headers or not any(h.strip() for h in headers):
        return None

    return [h.strip() for h in headers], reader


def read_rows(raw: str | bytes, mode: str = "standard") -> list[dict]:
    """Decode a CSV blob into rows.  Raises SourceError on unusable input."""
    if mode not in IMPORT_MODES:
        raise SourceError(f"Unknown import mode {mode!r}")

    prepared = prepare_reader(raw)
    if prepared is None:
        raise SourceError("CSV has no header row or is empty")
    headers, reader = prepared

    try:
        if mode == MODE_CANADIAN_CITIES:
            return [row for row in map(_city_row, reader) if row]
        return [row for row in (_standard_row(headers, data) for data in reader) if row]
    except csv.Error as exc:
        raise SourceError(f"Malformed CSV: {exc}") from exc


# ── Private helpers ────────────────────────────────────────────────────

def _cell(data: list[str], idx: int) -> str:
    return data[idx].strip() if idx < len(data) and data[idx] else ""


def _standard_row(headers: list[str], data: list[str]) -> dict | None:
    name = _cell(data, 0)
    if not name:
        return None

    row = {key: _cell(data, idx) for idx, key in enumerate(STANDARD_FIXED_COLUMNS)}
    for idx in range(len(STANDARD_FIXED_COLUMNS), len(headers)):
        val = _cell(data, idx)
        if val and headers[idx]:
            row[headers[idx]] = val
    return row


def _city_row(data: list[str]) -> dict | None:
    name = _cell(data, CITY_NAME_COL)
    if not name:
        return None

    row: dict = {
        "name": name,
        "parent": _cell(data, CITY_PROVINCE_COL),
        "description": "",
    }
    for idx, field_name in CITY_FIELDS.items():
        val = _cell(data, idx)
        if val:
            row[field_name] = val

    point = as_geopoint({"lat": _cell(data, CITY_LAT_COL), "lng": _cell(data, CITY_LNG_COL)})
    if point is not None:
        row[CITY_GEO_FIELD] = point
    return row


def _decode(raw: str | bytes) -> str:
    """UTF-8 (BOM dropped); spreadsheet exports that are not UTF-8 are read as cp1252."""
    if isinstance(raw, str):
        return raw.lstrip("\ufeff")
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("CSV is not valid UTF-8, decoding as cp1252")
        return raw.decode("cp1252", errors="replace")
