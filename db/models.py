"""
db.models - SQLAlchemy ORM declarations.

Tables
------
vocabularies       - one row per taxonomy, keyed by machine name (vid).
vocabulary_fields  - declared custom-field schema per vocabulary.  The
                     importer only writes fields listed here.
terms              - taxonomy nodes.  Names are unique only within a
                     parent scope, so (vid, name) is indexed, not unique.
term_parents       - stored parent links.  parent_tid is a raw reference
                     (no FK); dangling links are skipped when resolved.
term_fields        - EAV store for custom values, JSON-encoded so that
                     structured values (geolocation pairs) survive.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, DateTime, Text, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Vocabulary(Base):
    __tablename__ = "vocabularies"

    vid         = Column(String(128), primary_key=True)          # machine name
    name        = Column(String(255), nullable=False)
    description = Column(Text, default="")
    created_at  = Column(DateTime, default=_utcnow)

    fields = relationship(
        "VocabularyField", back_populates="vocabulary",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="VocabularyField.id",
    )

    def to_dict(self, with_fields: bool = False) -> dict:
        d = {
            "vid": self.vid,
            "name": self.name,
            "description": self.description or "",
        }
        if with_fields:
            d["fields"] = [f.to_dict() for f in self.fields]
        return d


class VocabularyField(Base):
    __tablename__ = "vocabulary_fields"

    id         = Column(Integer, primary_key=True, autoincrement=True)
    vid        = Column(String(128),
                        ForeignKey("vocabularies.vid", ondelete="CASCADE"),
                        nullable=False, index=True)
    field_name = Column(String(200), nullable=False)
    field_type = Column(String(32), nullable=False, default="string")
    label      = Column(String(255), default="")

    vocabulary = relationship("Vocabulary", back_populates="fields")

    __table_args__ = (
        UniqueConstraint("vid", "field_name", name="uq_vocabulary_field"),
    )

    def to_dict(self) -> dict:
        return {
            "field_name": self.field_name,
            "field_type": self.field_type,
            "label": self.label or "",
        }


class Term(Base):
    __tablename__ = "terms"

    tid         = Column(Integer, primary_key=True, autoincrement=True)
    vid         = Column(String(128),
                         ForeignKey("vocabularies.vid", ondelete="CASCADE"),
                         nullable=False)
    name        = Column(String(255), nullable=False)
    description = Column(Text, default="")

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    parent_links = relationship(
        "TermParent", back_populates="term",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="TermParent.position",
    )
    fields = relationship(
        "TermField", back_populates="term",
        cascade="all, delete-orphan", lazy="selectin",
    )

    __table_args__ = (
        Index("ix_term_vid_name", "vid", "name"),
    )

    def __repr__(self) -> str:
        return f"<Term tid={self.tid} vid={self.vid!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        d = {
            "tid": self.tid,
            "vid": self.vid,
            "name": self.name,
            "description": self.description or "",
            "parents": [link.parent_tid for link in self.parent_links],
            "fields": {},
        }
        for f in self.fields:
            try:
                d["fields"][f.field_name] = json.loads(f.value)
            except (json.JSONDecodeError, TypeError):
                d["fields"][f.field_name] = f.value
        return d


class TermParent(Base):
    __tablename__ = "term_parents"

    id         = Column(Integer, primary_key=True, autoincrement=True)
    tid        = Column(Integer,
                        ForeignKey("terms.tid", ondelete="CASCADE"),
                        nullable=False, index=True)
    parent_tid = Column(Integer, nullable=False, index=True)
    position   = Column(Integer, nullable=False, default=0)

    term = relationship("Term", back_populates="parent_links")


class TermField(Base):
    __tablename__ = "term_fields"

    id         = Column(Integer, primary_key=True, autoincrement=True)
    tid        = Column(Integer,
                        ForeignKey("terms.tid", ondelete="CASCADE"),
                        nullable=False, index=True)
    field_name = Column(String(200), nullable=False)
    value      = Column(Text, nullable=False, default="null")    # JSON

    term = relationship("Term", back_populates="fields")

    __table_args__ = (
        Index("ix_term_field_lookup", "tid", "field_name"),
    )
