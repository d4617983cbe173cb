"""
db - Database layer (the persistent term store).

Public API:
    init_db()       → create engine + tables
    get_session()   → new Session
    session_scope() → context-managed Session
    Vocabulary, VocabularyField, Term, TermParent, TermField → ORM models
"""

from db.engine import init_db, get_session, session_scope   # noqa: F401
from db.models import (                                     # noqa: F401
    Base,
    Vocabulary,
    VocabularyField,
    Term,
    TermParent,
    TermField,
)
