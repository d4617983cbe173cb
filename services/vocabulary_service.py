"""
services.vocabulary_service - Vocabularies and their declared field schema.

Session management is the caller's responsibility except where a
function is documented to commit.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models import Term, Vocabulary, VocabularyField
from taxonomy_import.values import FIELD_TYPES, FIELD_TYPE_STRING

logger = logging.getLogger(__name__)

_NON_MACHINE = re.compile(r"[^a-z0-9_]+")


def machine_name(display_name: str) -> str:
    """'Canadian Cities!' → 'canadian_cities_'"""
    return _NON_MACHINE.sub("_", display_name.lower())


def get_vocabulary(session: Session, vid: str) -> Vocabulary | None:
    return session.get(Vocabulary, vid)


def list_vocabularies(session: Session) -> list[Vocabulary]:
    return list(session.scalars(select(Vocabulary).order_by(Vocabulary.vid)))


def get_or_create_vocabulary(
    session: Session, display_name: str, description: str = "",
) -> Vocabulary:
    """Idempotent by machine name.  Commits when a vocabulary is created."""
    if not display_name or not display_name.strip():
        raise ValueError("vocabulary name is empty")

    vid = machine_name(display_name)
    vocab = session.get(Vocabulary, vid)
    if vocab is not None:
        return vocab

    vocab = Vocabulary(vid=vid, name=display_name, description=description)
    session.add(vocab)
    session.commit()
    logger.info(f"Created vocabulary {vid!r} ({display_name})")
    return vocab


def declare_field(
    session: Session,
    vid: str,
    field_name: str,
    field_type: str = FIELD_TYPE_STRING,
    label: str = "",
) -> VocabularyField:
    """
    Add (or re-type) a custom field on a vocabulary.  Commits.
    Raises ValueError for an unknown vocabulary or field type.
    """
    if field_type not in FIELD_TYPES:
        raise ValueError(f"unknown field type {field_type!r}")
    if not field_name or not field_name.strip():
        raise ValueError("field name is empty")
    if session.get(Vocabulary, vid) is None:
        raise ValueError(f"unknown vocabulary {vid!r}")

    field = session.scalars(
        select(VocabularyField).where(
            VocabularyField.vid == vid, VocabularyField.field_name == field_name,
        )
    ).first()
    if field is None:
        field = VocabularyField(vid=vid, field_name=field_name)
        session.add(field)
    field.field_type = field_type
    field.label = label
    session.commit()
    return field


def term_tree(session: Session, vid: str) -> list[dict]:
    """
    Two-level view of a vocabulary: root terms with their children.
    Terms whose parents no longer exist are listed as roots.
    """
    terms = list(session.scalars(
        select(Term).where(Term.vid == vid).order_by(Term.name, Term.tid)
    ))
    by_tid = {t.tid: t for t in terms}

    nodes = {t.tid: {**t.to_dict(), "children": []} for t in terms}
    roots = []
    for term in terms:
        parents = [link.parent_tid for link in term.parent_links
                   if link.parent_tid in by_tid]
        if parents:
            nodes[parents[0]]["children"].append(nodes[term.tid])
        else:
            roots.append(nodes[term.tid])
    return roots
