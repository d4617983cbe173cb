from collections import Counter

import pytest
from sqlalchemy import func, select

import config
from db.models import Term
from services.term_repository import SqlTermRepository
from taxonomy_import import EmptyImportError, RowOutcome, import_rows
from taxonomy_import.values import GeoPoint
from tests.factories import TermFactory


class FlakyRepository(SqlTermRepository):
    """Fails the first `failures` commits of each term named in `fail_names`."""

    def __init__(self, session, fail_names=(), failures=2):
        super().__init__(session)
        self.remaining = {name: failures for name in fail_names}
        self.attempts = Counter()
        self.updates = 0

    def update_term(self, term, parent_ids, description, custom_fields):
        self.updates += 1
        return super().update_term(term, parent_ids, description, custom_fields)

    def _commit(self, term):
        self.attempts[term.name] += 1
        if self.remaining.get(term.name, 0) > 0:
            self.remaining[term.name] -= 1
            self.session.rollback()
            raise RuntimeError("database is locked")
        super()._commit(term)


def _run(repo, rows, limiter, sleeps, **kwargs):
    return import_rows(repo, "places", rows, rate_limiter=limiter, sleep=sleeps.append, **kwargs)


def _terms_named(session, name):
    return list(session.scalars(select(Term).where(Term.name == name)))


def _term_count(session):
    return session.scalar(select(func.count(Term.tid)))


def test_empty_rows_rejected(repo, limiter, sleeps):
    with pytest.raises(EmptyImportError):
        _run(repo, [], limiter, sleeps)


def test_parent_created_before_child(session, repo, limiter, sleeps):
    report = _run(repo, [{"name": "Toronto", "parent": "Ontario"}], limiter, sleeps)

    ontario = _terms_named(session, "Ontario")
    toronto = _terms_named(session, "Toronto")
    assert len(ontario) == 1 and len(toronto) == 1
    assert repo.parent_ids(ontario[0]) == []
    assert repo.parent_ids(toronto[0]) == [ontario[0].tid]
    assert report.parents_created == 1
    assert report.created == 1
    assert limiter.calls == ["parent"]


def test_second_run_creates_nothing(session, repo, limiter, sleeps):
    rows = [
        {"name": "Toronto", "parent": "Ontario", "description": "Capital", "field_county": "York"},
        {"name": "Ottawa", "parent": "Ontario"},
        {"name": "Quebec City", "parent": "Quebec"},
        {"name": "Yukon"},
    ]
    first = _run(repo, rows, limiter, sleeps)
    count = _term_count(session)

    second = _run(repo, rows, limiter, sleeps)

    assert first.created == 4
    assert second.created == 0
    assert second.parents_created == 0
    assert second.updated == 4
    assert second.unchanged == 4
    assert _term_count(session) == count


def test_lookup_keeps_same_name_under_different_parents_apart(session, repo, limiter, sleeps):
    illinois = TermFactory(name="Illinois")
    missouri = TermFactory(name="Missouri")
    spring_il = TermFactory(name="Springfield", parents=[illinois])
    spring_mo = TermFactory(name="Springfield", parents=[missouri])

    report = _run(repo, [{"name": "Springfield", "parent": "Illinois", "description": "IL"}],
                  limiter, sleeps)

    session.expire_all()
    assert report.updated == 1 and report.created == 0
    assert report.results[0].tid == spring_il.tid
    assert spring_il.description == "IL"
    assert spring_mo.description == ""


def test_parent_links_are_replaced_not_appended(session, repo, limiter, sleeps):
    ontario = TermFactory(name="Ontario")
    quebec = TermFactory(name="Quebec")
    ottawa = TermFactory(name="Ottawa", parents=[quebec, ontario])

    report = _run(repo, [{"name": "Ottawa", "parent": "Ontario"}], limiter, sleeps)

    session.expire_all()
    assert report.results[0].outcome is RowOutcome.UPDATED
    assert [link.parent_tid for link in ottawa.parent_links] == [ontario.tid]


def test_dangling_parent_link_is_ignored_when_comparing(session, repo, limiter, sleeps):
    ontario = TermFactory(name="Ontario")
    # Stored link to a term that no longer exists plus the real parent
    ottawa = TermFactory(name="Ottawa", parents=[9999, ontario])

    assert repo.parent_ids(ottawa) == [ontario.tid]

    report = _run(repo, [{"name": "Ottawa", "parent": "Ontario"}], limiter, sleeps)

    assert report.results[0].outcome is RowOutcome.UNCHANGED
    assert report.results[0].tid == ottawa.tid


def test_undeclared_field_is_dropped_with_warning(session, repo, limiter, sleeps):
    rows = [{"name": "Toronto", "field_unknown": "x", "field_county": "York"}]

    report = _run(repo, rows, limiter, sleeps)

    toronto = _terms_named(session, "Toronto")[0]
    assert report.created == 1
    assert repo.field_values(toronto) == {"field_county": "York"}
    assert any("field_unknown" in w["message"] for w in report.warnings)
    assert report.errors == []


def test_geolocation_saved_only_when_coordinates_change(session, vocab, limiter, sleeps):
    repo = FlakyRepository(session)
    row = {"name": "Toronto", "field_geolocation": GeoPoint(43.7, -79.4)}

    _run(repo, [row], limiter, sleeps)
    same = _run(repo, [{"name": "Toronto", "field_geolocation": {"lat": "43.7", "lng": "-79.4"}}],
                limiter, sleeps)
    assert same.results[0].outcome is RowOutcome.UNCHANGED
    assert repo.updates == 0

    moved = _run(repo, [{"name": "Toronto", "field_geolocation": GeoPoint(43.7, -79.5)}],
                 limiter, sleeps)
    toronto = _terms_named(session, "Toronto")[0]
    assert moved.results[0].outcome is RowOutcome.UPDATED
    assert repo.updates == 1
    assert repo.field_values(toronto)["field_geolocation"] == GeoPoint(43.7, -79.5)


def test_invalid_geolocation_is_skipped(session, repo, limiter, sleeps):
    report = _run(repo, [{"name": "Nowhere", "field_geolocation": "north"}], limiter, sleeps)

    term = _terms_named(session, "Nowhere")[0]
    assert report.created == 1
    assert repo.field_values(term) == {}
    assert any("geolocation" in w["message"] for w in report.warnings)


def test_failing_row_does_not_stop_the_batch(session, vocab, limiter, sleeps):
    repo = FlakyRepository(session, fail_names=["City 5"], failures=2)
    rows = [{"name": f"City {i}"} for i in range(1, 11)]

    report = _run(repo, rows, limiter, sleeps)

    assert report.processed == 10
    assert report.created == 9
    assert report.failed == 1
    assert [e["row"] for e in report.errors] == [5]
    assert repo.attempts["City 5"] == 2
    assert _terms_named(session, "City 5") == []
    assert len(_terms_named(session, "City 6")) == 1


def test_save_is_retried_once_after_delay(session, vocab, limiter, sleeps):
    repo = FlakyRepository(session, fail_names=["Toronto"], failures=1)

    report = _run(repo, [{"name": "Toronto"}], limiter, sleeps)

    assert report.created == 1
    assert repo.attempts["Toronto"] == 2
    assert sleeps == [config.RETRY_DELAY]


def test_update_is_retried_once(session, vocab, limiter, sleeps):
    TermFactory(name="Toronto", description="old")
    repo = FlakyRepository(session, fail_names=["Toronto"], failures=1)

    report = _run(repo, [{"name": "Toronto", "description": "new"}], limiter, sleeps)

    session.expire_all()
    assert report.updated == 1
    assert _terms_named(session, "Toronto")[0].description == "new"


def test_child_skipped_when_parent_creation_fails(session, vocab, limiter, sleeps):
    repo = FlakyRepository(session, fail_names=["NeverCreated"], failures=2)
    rows = [{"name": "X", "parent": "NeverCreated"}, {"name": "Y"}]

    report = _run(repo, rows, limiter, sleeps)

    assert report.processed == 2
    assert report.skipped == 1
    assert report.created == 1
    assert report.results[0].outcome is RowOutcome.SKIPPED_MISSING_PARENT
    assert _terms_named(session, "X") == []
    assert any("NeverCreated" in w["message"] for w in report.warnings)


def test_force_new_terms_always_creates(session, repo, limiter, sleeps):
    TermFactory(name="Toronto")

    report = _run(repo, [{"name": "Toronto"}], limiter, sleeps, force_new_terms=True)

    assert report.created == 1
    assert len(_terms_named(session, "Toronto")) == 2


def test_duplicate_rows_in_one_run_create_one_term(session, repo, limiter, sleeps):
    rows = [
        {"name": "Toronto", "parent": "Ontario", "description": "a"},
        {"name": "Toronto", "parent": "Ontario", "description": "b"},
    ]

    report = _run(repo, rows, limiter, sleeps)

    session.expire_all()
    toronto = _terms_named(session, "Toronto")
    assert report.created == 1 and report.updated == 1
    assert len(toronto) == 1
    assert toronto[0].description == "b"


def test_throttle_every_batch(session, repo, limiter, sleeps):
    rows = [{"name": f"Term {i}"} for i in range(120)]

    report = _run(repo, rows, limiter, sleeps, progress_every=50)

    assert report.created == 120
    assert limiter.calls == ["batch", "batch"]


def test_cancel_between_rows(session, repo, limiter, sleeps):
    rows = [{"name": f"Term {i}"} for i in range(5)]
    seen = []

    def should_stop():
        seen.append(1)
        return len(seen) > 2

    report = _run(repo, rows, limiter, sleeps, should_stop=should_stop)

    assert report.cancelled
    assert report.processed == 2
    assert _term_count(session) == 2


def test_row_without_name_fails_alone(session, repo, limiter, sleeps):
    report = _run(repo, [{"name": ""}, {"name": "Toronto"}], limiter, sleeps)

    assert report.failed == 1
    assert report.created == 1
    assert report.errors == [{"row": 1, "reason": "missing name"}]


def test_number_word_value_is_stable_across_runs(session, vocab, limiter, sleeps):
    repo = FlakyRepository(session)
    rows = [{"name": "Nan City", "field_county": "Nan"}]

    _run(repo, rows, limiter, sleeps)
    again = _run(repo, rows, limiter, sleeps)

    assert again.results[0].outcome is RowOutcome.UNCHANGED
    assert repo.updates == 0
