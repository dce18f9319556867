# gather/conftest.py
import pytest
from fastapi.testclient import TestClient

from gather.core.auth import create_token
from gather.core.config import Settings
from gather.core.container import build_services
from gather.core.database import Database
from gather.core.metrics import METRICS
from gather.models.location import Coordinate
from gather.tests.helpers import LISBON, NOW, TEST_SECRET


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENV="test",
        DATABASE_URL="sqlite://",
        TOKEN_SECRET=TEST_SECRET,
    )


@pytest.fixture
def db(settings):
    """Fresh in-memory SQLite per test (one shared connection via StaticPool)."""
    database = Database(settings.DATABASE_URL)
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture
def services(settings, db):
    return build_services(settings, db)


@pytest.fixture(autouse=True)
def reset_metrics():
    METRICS.reset()
    yield
    METRICS.reset()


@pytest.fixture
def make_user(services):
    """Register a user and return the stored record."""
    counter = {"n": 0}

    def _make(name: str = None, password: str = "secret123"):
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        result = services.users.register(name, f"{name.lower()}@example.com", password, now=NOW)
        return services.user_store.get(result.user.id)

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("Alice")


@pytest.fixture
def bob(make_user):
    return make_user("Bob")


@pytest.fixture
def carol(make_user):
    return make_user("Carol")


@pytest.fixture
def make_plan(services):
    def _make(owner, **overrides):
        values = {
            "description": "Sunset at the beach",
            "plan_type": "beach",
            "coordinate": LISBON,
            "time": NOW,
            "expires": None,
            "capacity": 0,
            "now": NOW,
        }
        values.update(overrides)
        return services.plans.create_plan(owner, **values)

    return _make


@pytest.fixture
def app(settings, services):
    from gather.main import create_app

    return create_app(settings=settings, services=services)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(settings):
    def _headers(user, location: Coordinate = None):
        headers = {"Authorization": f"Bearer {create_token(user.id, settings)}"}
        if location is not None:
            headers["Location"] = f"{location.latitude},{location.longitude}"
        return headers

    return _headers
