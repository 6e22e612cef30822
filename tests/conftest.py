"""
Pytest configuration and shared fixtures.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from indiebookshop.core.models import Base, Bookstore, Event, Feature
from indiebookshop.core.config import reset_settings
from indiebookshop.core.schemas import BookshopSummary


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "MAPBOX_ACCESS_TOKEN",
        "SITE_BASE_URL",
        "API_BASE_URL",
        "HTML_SHELL_PATH",
        "LOG_LEVEL",
        "MAX_RETRIES",
        "RETRY_BACKOFF_FACTOR",
        "HTTP_TIMEOUT",
        "RATE_LIMIT_ENABLED",
        "RATE_LIMIT_WINDOW_SECONDS",
        "RATE_LIMIT_MAX_REQUESTS",
        "RATE_LIMIT_SWEEP_INTERVAL_SECONDS",
        "DIRECTORY_MOVE_DEBOUNCE_SECONDS",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def test_db():
    """
    Create an in-memory SQLite database for testing.

    StaticPool keeps one connection so TestClient worker threads see the
    same database as the test.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


# =============================================================================
# Sample data
# =============================================================================


def make_bookshop(**overrides) -> dict:
    """Summary-shaped dict for a live bookshop; override any field."""
    data = {
        "id": 1,
        "name": "Test Books",
        "slug": "test-books",
        "street": "1 Main St",
        "city": "Portland",
        "state": "OR",
        "county": "Multnomah",
        "zip": "97201",
        "latitude": "45.52",
        "longitude": "-122.68",
        "live": True,
        "feature_ids": [],
        "description": "",
    }
    data.update(overrides)
    return data


@pytest.fixture
def bookshop_factory():
    """Build summary-shaped bookshop dicts: bookshop_factory(id=7, state="CA")."""
    return make_bookshop


@pytest.fixture
def ca_and_others():
    """Five live California bookshops and ten elsewhere."""
    shops = []
    for i in range(5):
        shops.append(BookshopSummary(**make_bookshop(
            id=100 + i, name=f"California Books {i}", slug=f"california-books-{i}",
            city="San Francisco", state="CA", county="San Francisco",
            latitude=str(37.70 + i * 0.02), longitude=str(-122.45 + i * 0.02),
        )))
    others = [("OR", "Portland", 45.5, -122.6), ("NY", "Brooklyn", 40.68, -73.95),
              ("TX", "Austin", 30.27, -97.74), ("WA", "Seattle", 47.6, -122.33),
              ("IL", "Chicago", 41.88, -87.63)]
    for i in range(10):
        state, city, lat, lng = others[i % len(others)]
        shops.append(BookshopSummary(**make_bookshop(
            id=200 + i, name=f"Other Books {i}", slug=f"other-books-{i}",
            city=city, state=state, county=None,
            latitude=str(lat + i * 0.01), longitude=str(lng + i * 0.01),
        )))
    return shops


@pytest.fixture
def sample_features(test_db):
    features = [
        Feature(id=1, name="Cafe", slug="cafe", keywords=["coffee", "cafe"]),
        Feature(id=2, name="Used Books", slug="used-books", keywords=["used", "secondhand"]),
        Feature(id=3, name="Children's Books", slug="childrens-books", keywords=["kids"]),
    ]
    test_db.add_all(features)
    test_db.commit()
    return features


@pytest.fixture
def sample_bookstores(test_db):
    """Live bookshops in two states plus one that is not live."""
    rows = [
        Bookstore(
            id=1, name="Powell's Books", street="1005 W Burnside St", city="Portland",
            state="OR", county="Multnomah", zip="97209", description="City of books.",
            latitude="45.5231", longitude="-122.6812", feature_ids=[1, 2], live=True,
            phone="503-228-4651", website="https://www.powells.com", google_rating="4.8",
            google_review_count=12000, hours={"Monday": "10am-9pm"},
        ),
        Bookstore(
            id=2, name="Green Apple Books", street="506 Clement St", city="San Francisco",
            state="CA", county="San Francisco", zip="94118", description="",
            latitude="37.7830", longitude="-122.4646", feature_ids=[2], live=True,
        ),
        Bookstore(
            id=3, name="Book Passage", street="51 Tamal Vista Blvd", city="Corte Madera",
            state="CA", county="Marin", zip="94925", description="Author events nightly.",
            latitude="37.9282", longitude="-122.5155", feature_ids=[1, 3], live=True,
        ),
        Bookstore(
            id=4, name="Closed Books", street="2 Gone Rd", city="Portland",
            state="OR", county="Multnomah", zip="97201", description="",
            latitude="45.51", longitude="-122.67", feature_ids=[1], live=False,
        ),
        Bookstore(
            id=5, name="Mystery Coordinates Books", street="3 Elm St", city="Eugene",
            state="OR", county="Lane", zip="97401", description="",
            latitude="not-a-number", longitude=None, feature_ids=None, live=True,
        ),
    ]
    test_db.add_all(rows)
    test_db.commit()
    return rows


@pytest.fixture
def sample_events(test_db, sample_bookstores):
    events = [
        Event(id=1, bookshop_id=1, title="Poetry Night", description="Open mic",
              date="2030-05-01", time="7:00 PM"),
        Event(id=2, bookshop_id=1, title="Old Reading", description="",
              date="2001-01-15", time="6:00 PM"),
        Event(id=3, bookshop_id=3, title="Author Talk", description="New novel",
              date="2030-03-10", time="7:30 PM"),
        Event(id=4, bookshop_id=4, title="Closing Party", description="",
              date="2030-06-01", time="8:00 PM"),
    ]
    test_db.add_all(events)
    test_db.commit()
    return events
