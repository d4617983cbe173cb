"""
taxonomy_import.reconciler - Match-or-create engine for term rows.

An import run has two strictly ordered passes:

  1. ParentResolver   - every distinct `parent` value must exist as a
                        root term before any child is looked at.
  2. TermReconciler   - each row is matched on (name, parent id) and
                        updated in place, or created.

Rows are processed one at a time and each create/update is committed
on its own.  A failing row becomes a FAILED RowResult; it never aborts
the batch.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence

import config
from taxonomy_import.errors import EmptyImportError
from taxonomy_import.lookup_cache import LookupCache, TermLookup
from taxonomy_import.rate_limit import (
    PHASE_BATCH, PHASE_PARENT, FixedDelayRateLimiter, RateLimiter,
)
from taxonomy_import.report import ImportReport, RowOutcome, RowResult
from taxonomy_import.values import (
    FIELD_TYPE_GEOLOCATION, FieldValue, as_geopoint, values_differ,
)

if TYPE_CHECKING:
    from db.models import Term
    from services.term_repository import TermRepository

logger = logging.getLogger(__name__)

# Row keys that are never custom fields
SYSTEM_KEYS = frozenset({"name", "parent", "description"})

Row = Mapping[str, Any]


def save_with_retry(
    action: Callable[[], "Term"],
    *,
    delay: float,
    sleep: Callable[[float], None],
    label: str,
) -> "Term":
    """Run a persistence call; on failure wait `delay` and try exactly once more."""
    try:
        return action()
    except Exception as exc:
        logger.error(f"Error saving term {label!r}: {exc} - retrying once")
        sleep(delay)
        return action()


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class ParentResolver:
    """Ensures every parent named in the rows exists as a root term."""

    def __init__(
        self,
        repository: "TermRepository",
        lookup: TermLookup,
        vid: str,
        *,
        rate_limiter: RateLimiter,
        retry_delay: float,
        sleep: Callable[[float], None],
    ):
        self.repository = repository
        self.lookup = lookup
        self.vid = vid
        self.rate_limiter = rate_limiter
        self.retry_delay = retry_delay
        self.sleep = sleep

    @staticmethod
    def collect(rows: Sequence[Row]) -> set[str]:
        return {_text(row.get("parent")) for row in rows if row.get("parent")}

    def run(self, rows: Sequence[Row], report: ImportReport) -> None:
        parents = self.collect(rows)
        logger.info(f"Creating {len(parents)} parent terms")

        for parent_name in sorted(parents):
            existing = self.lookup.find(self.vid, parent_name, 0)
            if existing is not None:
                logger.debug(f"Parent term already exists: {parent_name} (tid {existing.tid})")
                continue

            logger.info(f"Creating parent term: {parent_name}")
            try:
                save_with_retry(
                    lambda: self.repository.create_term(self.vid, parent_name, 0, "", {}),
                    delay=self.retry_delay, sleep=self.sleep, label=parent_name,
                )
            except Exception as exc:
                # Children of this parent are skipped by the reconciliation pass
                logger.error(f"Failed to create parent term {parent_name!r}: {exc}")
                report.add_warning(0, f"Parent term {parent_name!r} could not be created: {exc}")
                continue
            report.parents_created += 1
            self.rate_limiter.wait(PHASE_PARENT)


class TermReconciler:
    """Processes rows in order, creating or updating one term per row."""

    def __init__(
        self,
        repository: "TermRepository",
        lookup: TermLookup,
        vid: str,
        *,
        force_new_terms: bool = False,
        rate_limiter: RateLimiter,
        retry_delay: float,
        sleep: Callable[[float], None],
        progress_every: int = config.PROGRESS_EVERY,
    ):
        self.repository = repository
        self.lookup = lookup
        self.vid = vid
        self.force_new_terms = force_new_terms
        self.rate_limiter = rate_limiter
        self.retry_delay = retry_delay
        self.sleep = sleep
        self.progress_every = max(1, progress_every)
        self._declared: dict[str, str] | None = None

    # ── Public ─────────────────────────────────────────────────────────

    def run(
        self,
        rows: Sequence[Row],
        report: ImportReport,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> None:
        total = len(rows)
        logger.info(f"Processing {total} terms")

        for index, row in enumerate(rows, start=1):
            if should_stop is not None and should_stop():
                logger.warning(f"Import cancelled after {report.processed} of {total} rows")
                report.cancelled = True
                break

            report.processed += 1
            result = self.process_row(index, row, report)
            report.add_result(result)

            if report.processed % self.progress_every == 0:
                self.rate_limiter.wait(PHASE_BATCH)
                logger.info(
                    f"Progress: {report.processed} of {total} terms "
                    f"({report.created} created, {report.updated} updated)"
                )

    def process_row(self, index: int, row: Row, report: ImportReport) -> RowResult:
        name = _text(row.get("name")).strip()
        parent_name = _text(row.get("parent"))

        if not name:
            return RowResult(index, name, parent_name, RowOutcome.FAILED, "missing name")

        parent_id = 0
        if parent_name:
            parent = self.lookup.find(self.vid, parent_name, 0)
            if parent is None:
                message = f"Parent term not found for child {name}: {parent_name}"
                logger.warning(message)
                report.add_warning(index, message)
                return RowResult(index, name, parent_name,
                                 RowOutcome.SKIPPED_MISSING_PARENT, message)
            parent_id = parent.tid

        try:
            fields = self._valid_fields(index, row, report)
            description = _text(row.get("description"))

            term = None
            if not self.force_new_terms:
                term = self.lookup.find(self.vid, name, parent_id)

            if term is not None:
                changed = self._update(term, parent_id, description, fields)
                outcome = RowOutcome.UPDATED if changed else RowOutcome.UNCHANGED
                logger.debug(f"Updated existing term: {name} under parent {parent_id}")
            else:
                term = self._create(name, parent_id, description, fields)
                outcome = RowOutcome.CREATED
                logger.debug(f"Created new term: {name} under parent {parent_id}")
        except Exception as exc:
            logger.error(
                f"Failed to process term {name} with parent {parent_name or 'none'}: {exc}"
            )
            return RowResult(index, name, parent_name, RowOutcome.FAILED, str(exc))

        return RowResult(index, name, parent_name, outcome, tid=term.tid)

    # ── Private helpers ────────────────────────────────────────────────

    def _declared_fields(self) -> dict[str, str]:
        if self._declared is None:
            self._declared = self.repository.declared_fields(self.vid)
        return self._declared

    def _valid_fields(self, index: int, row: Row, report: ImportReport) -> dict[str, FieldValue]:
        """Custom values of `row` that the vocabulary declares, coerced by type."""
        declared = self._declared_fields()
        valid: dict[str, FieldValue] = {}
        missing: list[str] = []

        for key, value in row.items():
            if key in SYSTEM_KEYS:
                continue
            if key not in declared:
                missing.append(key)
                continue
            if declared[key] == FIELD_TYPE_GEOLOCATION:
                point = as_geopoint(value)
                if point is None:
                    message = f"Invalid geolocation for field {key}: {value!r}"
                    logger.warning(message)
                    report.add_warning(index, message)
                    continue
                valid[key] = point
            elif isinstance(value, Mapping):
                report.add_warning(index, f"Structured value ignored for field {key}")
            else:
                valid[key] = value

        if missing:
            message = f"Fields not found in vocabulary {self.vid}: {', '.join(missing)}"
            logger.warning(message)
            report.add_warning(index, message)
        return valid

    def _update(self, term: "Term", parent_id: int, description: str,
                fields: Mapping[str, FieldValue]) -> bool:
        """Diff the row against `term` and save only what changed."""
        current_parents = self.repository.parent_ids(term)
        wanted_parents = [parent_id] if parent_id else []
        new_parents = None
        if current_parents != wanted_parents:
            logger.debug(
                f"Updating parent for term {term.name} from "
                f"{current_parents or [0]} to {wanted_parents or [0]}"
            )
            new_parents = wanted_parents

        new_description = None
        if _text(term.description) != description:
            new_description = description

        current_values = self.repository.field_values(term)
        changed_fields = {
            key: value for key, value in fields.items()
            if values_differ(current_values.get(key), value)
        }

        if new_parents is None and new_description is None and not changed_fields:
            return False

        save_with_retry(
            lambda: self.repository.update_term(term, new_parents, new_description, changed_fields),
            delay=self.retry_delay, sleep=self.sleep, label=term.name,
        )
        return True

    def _create(self, name: str, parent_id: int, description: str,
                fields: Mapping[str, FieldValue]) -> "Term":
        term = save_with_retry(
            lambda: self.repository.create_term(self.vid, name, parent_id, description, fields),
            delay=self.retry_delay, sleep=self.sleep, label=name,
        )
        if not self.force_new_terms:
            self.lookup.remember(self.vid, name, parent_id, term)
        return term


def import_rows(
    repository: "TermRepository",
    vid: str,
    rows: Sequence[Row],
    force_new_terms: bool = False,
    *,
    rate_limiter: Optional[RateLimiter] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    retry_delay: float = config.RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    progress_every: int = config.PROGRESS_EVERY,
) -> ImportReport:
    """
    Reconcile `rows` into vocabulary `vid`.

    Raises EmptyImportError if there are no rows; everything that goes
    wrong after that is recorded on the returned ImportReport.
    """
    rows = list(rows)
    if not rows:
        raise EmptyImportError("no rows to import")

    if rate_limiter is None:
        rate_limiter = FixedDelayRateLimiter(sleep=sleep)

    report = ImportReport(vid=vid, total_rows=len(rows))
    lookup = TermLookup(repository, LookupCache())

    ParentResolver(
        repository, lookup, vid,
        rate_limiter=rate_limiter, retry_delay=retry_delay, sleep=sleep,
    ).run(rows, report)

    # Parents created above must be visible to the child lookups
    lookup.reset()

    TermReconciler(
        repository, lookup, vid,
        force_new_terms=force_new_terms,
        rate_limiter=rate_limiter, retry_delay=retry_delay, sleep=sleep,
        progress_every=progress_every,
    ).run(rows, report, should_stop=should_stop)

    logger.info(
        f"Import complete: {report.created} created, {report.updated} updated "
        f"out of {report.total_rows} total"
    )
    return report
