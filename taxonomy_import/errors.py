"""
taxonomy_import.errors - Exceptions that abort an import before any
term is touched.  Per-row problems are reported as RowResult values
instead (see taxonomy_import.report).
"""


class TaxonomyImportError(Exception):
    """Base class for import errors."""


class SourceError(TaxonomyImportError):
    """The source file is empty, unreadable, or of an unsupported type."""


class EmptyImportError(SourceError):
    """The decoded source contained no importable rows."""
