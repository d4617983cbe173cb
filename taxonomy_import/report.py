"""
taxonomy_import.report - Per-row outcomes and the summary of an import run.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional


class RowOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED_MISSING_PARENT = "skipped_missing_parent"
    FAILED = "failed"


@dataclass
class RowResult:
    row: int                          # 1-based position in the row sequence
    name: str
    parent: str
    outcome: RowOutcome
    reason: str = ""
    tid: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "row": self.row,
            "name": self.name,
            "parent": self.parent,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "tid": self.tid,
        }


@dataclass
class ImportReport:
    vid: str = ""
    total_rows: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0                  # includes unchanged (matched, nothing to save)
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    parents_created: int = 0
    cancelled: bool = False
    warnings: list[dict] = field(default_factory=list)   # [{row, message}]
    errors: list[dict] = field(default_factory=list)     # [{row, reason}]
    results: list[RowResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """False when the import was rejected before reconciliation."""
        return not any(e["row"] == 0 for e in self.errors)

    def add_result(self, result: RowResult):
        self.results.append(result)
        if result.outcome is RowOutcome.CREATED:
            self.created += 1
        elif result.outcome is RowOutcome.UPDATED:
            self.updated += 1
        elif result.outcome is RowOutcome.UNCHANGED:
            self.updated += 1
            self.unchanged += 1
        elif result.outcome is RowOutcome.SKIPPED_MISSING_PARENT:
            self.skipped += 1
        elif result.outcome is RowOutcome.FAILED:
            self.failed += 1
            self.errors.append({"row": result.row, "reason": result.reason})

    def add_warning(self, row: int, message: str):
        self.warnings.append({"row": row, "message": message})

    def add_error(self, row: int, reason: str):
        self.errors.append({"row": row, "reason": reason})

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "vid": self.vid,
            "total_rows": self.total_rows,
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "parents_created": self.parents_created,
            "cancelled": self.cancelled,
            "warnings": self.warnings,
            "errors": self.errors,
        }
