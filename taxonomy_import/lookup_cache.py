"""
taxonomy_import.lookup_cache - Run-scoped memo of (vid, name, parent) lookups.

A LookupCache lives for exactly one import run.  It remembers both hits
and confirmed misses so that repeated rows never re-query the store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from db.models import Term
    from services.term_repository import TermRepository

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, int]

ABSENT = object()   # confirmed-absent marker


class LookupCache:

    def __init__(self):
        self._entries: dict[CacheKey, object] = {}

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: CacheKey) -> Optional["Term"]:
        """Return the cached term, or None for a miss or a cached absence."""
        entry = self._entries.get(key)
        return None if entry is None or entry is ABSENT else entry

    def put(self, key: CacheKey, term: Optional["Term"]) -> None:
        self._entries[key] = ABSENT if term is None else term

    def clear(self) -> None:
        self._entries.clear()


class TermLookup:
    """
    Find the term named `name` under `parent_id` (0 = root).

    Several terms may share a name within a vocabulary.  Candidates are
    checked in repository order and the first whose resolved parents
    match wins; a root request matches only terms with no parents.
    No match is cached as absent and returned as None.
    """

    def __init__(self, repository: "TermRepository", cache: LookupCache | None = None):
        self.repository = repository
        self.cache = cache if cache is not None else LookupCache()

    def find(self, vid: str, name: str, parent_id: int = 0) -> Optional["Term"]:
        key = (vid, name, parent_id)
        if key in self.cache:
            return self.cache.get(key)

        match = None
        for term in self.repository.find_terms(vid, name):
            parent_ids = self.repository.parent_ids(term)
            if parent_id == 0 and not parent_ids:
                match = term
                break
            if parent_id and parent_id in parent_ids:
                match = term
                break

        self.cache.put(key, match)
        return match

    def remember(self, vid: str, name: str, parent_id: int, term: "Term") -> None:
        """Record a term created during the run under its lookup key."""
        self.cache.put((vid, name, parent_id), term)

    def reset(self) -> None:
        logger.debug(f"Lookup cache cleared ({len(self.cache)} entries)")
        self.cache.clear()
