"""
taxonomy_import - Taxonomy term import pipeline.

Public API:
    import_rows(repository, vid, rows, force_new_terms=False) → ImportReport
    run_import(file_content, vid, filename=, mimetype=, mode=) → ImportReport
"""

from taxonomy_import.errors import (                       # noqa: F401
    TaxonomyImportError,
    SourceError,
    EmptyImportError,
)
from taxonomy_import.report import ImportReport, RowOutcome, RowResult   # noqa: F401
from taxonomy_import.reconciler import import_rows         # noqa: F401
from taxonomy_import.importer import run_import            # noqa: F401
