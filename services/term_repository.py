"""
services.term_repository - Persistence boundary for the import engine.

The reconciler only talks to a TermRepository.  SqlTermRepository is
the SQLAlchemy implementation; every create/update is committed on its
own so a failing row never drags earlier rows down with it.
"""

from __future__ import annotations

import abc
import logging
from typing import Iterable, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models import Term, TermField, TermParent, Vocabulary, VocabularyField
from services.vocabulary_service import get_or_create_vocabulary
from taxonomy_import.values import FieldValue, decode_value, encode_value

logger = logging.getLogger(__name__)


class TermRepository(abc.ABC):

    @abc.abstractmethod
    def find_terms(self, vid: str, name: str) -> list[Term]:
        """All terms in `vid` called `name`, in stable (creation) order."""

    @abc.abstractmethod
    def create_term(
        self,
        vid: str,
        name: str,
        parent_id: int,
        description: str,
        custom_fields: Mapping[str, FieldValue],
    ) -> Term:
        """Create and persist a term.  parent_id 0 means root."""

    @abc.abstractmethod
    def update_term(
        self,
        term: Term,
        parent_ids: Optional[Sequence[int]],
        description: Optional[str],
        custom_fields: Mapping[str, FieldValue],
    ) -> Term:
        """
        Apply changes and persist.  parent_ids replaces the stored links
        (None = leave as is); description None = leave as is; only the
        given custom fields are written.
        """

    @abc.abstractmethod
    def declared_fields(self, vid: str) -> dict[str, str]:
        """Declared custom fields of `vid` as {field_name: field_type}."""

    @abc.abstractmethod
    def parent_ids(self, term: Term) -> list[int]:
        """Ids of the existing terms that `term` links to as parents."""

    @abc.abstractmethod
    def field_values(self, term: Term) -> dict[str, FieldValue]:
        """Current custom-field values of `term`."""

    @abc.abstractmethod
    def get_or_create_vocabulary(self, display_name: str) -> Vocabulary:
        """Vocabulary keyed by the machine name of `display_name`."""


class SqlTermRepository(TermRepository):

    def __init__(self, session: Session):
        self.session = session

    # ── Queries ────────────────────────────────────────────────────────

    def find_terms(self, vid: str, name: str) -> list[Term]:
        stmt = (
            select(Term)
            .where(Term.vid == vid, Term.name == name)
            .order_by(Term.tid)
        )
        return list(self.session.scalars(stmt))

    def declared_fields(self, vid: str) -> dict[str, str]:
        stmt = select(VocabularyField).where(VocabularyField.vid == vid)
        return {f.field_name: f.field_type for f in self.session.scalars(stmt)}

    def parent_ids(self, term: Term) -> list[int]:
        linked = [link.parent_tid for link in term.parent_links if link.parent_tid]
        if not linked:
            return []
        existing = set(self.session.scalars(
            select(Term.tid).where(Term.tid.in_(linked))
        ))
        return [tid for tid in linked if tid in existing]

    def field_values(self, term: Term) -> dict[str, FieldValue]:
        return {f.field_name: decode_value(f.value) for f in term.fields}

    # ── Writes ─────────────────────────────────────────────────────────

    def create_term(self, vid, name, parent_id, description, custom_fields):
        term = Term(vid=vid, name=name, description=description or "")
        self._set_parents(term, [parent_id])
        for field_name, value in custom_fields.items():
            term.fields.append(TermField(field_name=field_name, value=encode_value(value)))

        self.session.add(term)
        self._commit(term)
        logger.debug(f"Created term {name!r} (tid {term.tid}) with parent {parent_id}")
        return term

    def update_term(self, term, parent_ids, description, custom_fields):
        if parent_ids is not None:
            self._set_parents(term, parent_ids)
        if description is not None:
            term.description = description

        existing = {f.field_name: f for f in term.fields}
        for field_name, value in custom_fields.items():
            encoded = encode_value(value)
            if field_name in existing:
                existing[field_name].value = encoded
            else:
                term.fields.append(TermField(field_name=field_name, value=encoded))

        self._commit(term)
        return term

    def get_or_create_vocabulary(self, display_name: str) -> Vocabulary:
        return get_or_create_vocabulary(self.session, display_name)

    # ── Private helpers ────────────────────────────────────────────────

    @staticmethod
    def _set_parents(term: Term, parent_ids: Iterable[int]):
        """Replace (never append) the stored links.  0 is stored as no link."""
        term.parent_links = [
            TermParent(parent_tid=pid, position=pos)
            for pos, pid in enumerate(p for p in parent_ids if p)
        ]

    def _commit(self, term: Term):
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.error(f"Error saving term {term.name!r}")
            raise
