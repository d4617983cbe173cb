"""
taxonomy_import.importer - Top-level orchestrator.

Coordinates decoder (CSV / XML) → reconciler → report for one uploaded
file.  Input problems are reported at row 0 and nothing is written.
"""

from __future__ import annotations

import logging
from pathlib import PurePath
from typing import Optional

from sqlalchemy.orm import Session

import config
from taxonomy_import import csv_parser, xml_parser
from taxonomy_import.errors import EmptyImportError, SourceError
from taxonomy_import.field_map import MODE_STANDARD
from taxonomy_import.rate_limit import RateLimiter
from taxonomy_import.reconciler import import_rows
from taxonomy_import.report import ImportReport

logger = logging.getLogger(__name__)

FORMAT_CSV = "csv"
FORMAT_XML = "xml"


def detect_format(filename: str = "", mimetype: str = "") -> str:
    """
    Pick the decoder from the file name and/or MIME type.
    Raises SourceError for disallowed extensions or unsupported types.
    """
    ext = PurePath(filename).suffix.lstrip(".").lower() if filename else ""
    if ext and ext not in config.allowed_extensions():
        raise SourceError(f"File extension .{ext} is not allowed")

    mimetype = (mimetype or "").split(";")[0].strip().lower()
    if mimetype in config.CSV_MIME_TYPES:
        return FORMAT_CSV
    if mimetype in config.XML_MIME_TYPES:
        return FORMAT_XML
    if ext in (FORMAT_CSV, FORMAT_XML):
        return ext
    raise SourceError("File is not of a supported type")


def decode_rows(content: str | bytes, fmt: str, mode: str = MODE_STANDARD) -> list[dict]:
    if fmt == FORMAT_XML:
        rows = xml_parser.read_rows(content)
    else:
        rows = csv_parser.read_rows(content, mode)
    if not rows:
        raise EmptyImportError("File contained no rows, please check the file")
    return rows


def run_import(
    file_content: str | bytes,
    vid: str,
    *,
    filename: str = "",
    mimetype: str = "",
    mode: str = MODE_STANDARD,
    force_new_terms: bool = False,
    session: Optional[Session] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> ImportReport:
    """
    Import a CSV or XML blob into vocabulary `vid`.

    Parameters
    ----------
    file_content : raw file (bytes or str)
    vid : machine name of an existing vocabulary
    filename, mimetype : used to pick the decoder
    mode : CSV column layout (standard | canadian_cities)
    force_new_terms : if True, never match existing terms
    session : reuse a session; otherwise one is opened and closed here

    Returns
    -------
    ImportReport with per-row outcomes
    """
    from db.engine import get_session
    from services.term_repository import SqlTermRepository

    try:
        fmt = detect_format(filename, mimetype)
        rows = decode_rows(file_content, fmt, mode)
    except SourceError as exc:
        logger.error(f"Import of {filename or 'upload'} rejected: {exc}")
        report = ImportReport(vid=vid)
        report.add_error(0, str(exc))
        return report

    own_session = session is None
    if own_session:
        session = get_session()
    try:
        return import_rows(
            SqlTermRepository(session), vid, rows, force_new_terms,
            rate_limiter=rate_limiter,
        )
    finally:
        if own_session:
            session.close()
