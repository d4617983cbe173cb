"""
services - Business-logic layer sitting between API/engine and DB.
"""

from services.term_repository import TermRepository, SqlTermRepository   # noqa: F401
from services.vocabulary_service import (                                 # noqa: F401
    machine_name,
    get_or_create_vocabulary,
    declare_field,
)
