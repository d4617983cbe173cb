import pytest

from db import init_db, get_session
from services.term_repository import SqlTermRepository
from services.vocabulary_service import declare_field
from taxonomy_import.rate_limit import RateLimiter
from tests.factories import TermFactory, VocabularyFactory


class RecordingRateLimiter(RateLimiter):
    """Records every wait() instead of sleeping."""

    def __init__(self):
        self.calls = []

    def wait(self, phase):
        self.calls.append(phase)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'test.sqlite'}"


@pytest.fixture
def session(db_url):
    """Fresh database per test; factories are bound to its session."""
    init_db(db_url)
    s = get_session()
    VocabularyFactory._meta.sqlalchemy_session = s
    TermFactory._meta.sqlalchemy_session = s
    yield s
    s.close()


@pytest.fixture
def vocab(session):
    """'places' vocabulary declaring the Canadian-cities custom fields."""
    v = VocabularyFactory(vid="places", name="Places")
    for field_name in ("field_county", "field_province_code", "field_city_id"):
        declare_field(session, "places", field_name)
    declare_field(session, "places", "field_geolocation", "geolocation")
    return v


@pytest.fixture
def repo(session, vocab):
    return SqlTermRepository(session)


@pytest.fixture
def limiter():
    return RecordingRateLimiter()


@pytest.fixture
def sleeps():
    """List that collects retry delays; pass `sleeps.append` as sleep."""
    return []


@pytest.fixture
def app(db_url):
    from main import create_app

    app = create_app(db_url)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Return a Flask test client."""
    return app.test_client()
