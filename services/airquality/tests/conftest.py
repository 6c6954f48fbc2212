"""
Shared test fixtures for the air quality cities test suite.

Provides:
- dict-backed asyncpg pool fake (no database needed)
- controllable clock for TTL tests
- async FastAPI test client with app.state wired to a mocked catalog
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("GOOGLE_PLACES_API_KEY", "")

from services.airquality.records import SourceTag  # noqa: E402
from services.airquality.tests.helpers.fakes import FakeClock, FakePool  # noqa: E402


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# FastAPI test client: catalog is mocked, routers and handlers are real
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_catalog():
    catalog = MagicMock()
    catalog.source_tags = [SourceTag.HISTORICAL_STORE, SourceTag.LIVE_API, SourceTag.LEGACY_API]
    catalog.list_cities = AsyncMock()
    catalog.flag_city = AsyncMock()
    catalog.unflag_city = AsyncMock()
    catalog.list_flagged = AsyncMock(return_value=[])
    catalog.city_history = AsyncMock(return_value=[])
    catalog.cleanup_history = AsyncMock(return_value=0)
    catalog.stats = AsyncMock(return_value={})
    catalog.country_name = MagicMock(side_effect=lambda code: {"PL": "Poland"}.get(code, code))
    catalog.list_countries = MagicMock(return_value=[{"code": "PL", "name": "Poland"}])
    catalog.invalidate_cache = MagicMock(return_value={})
    return catalog


@pytest.fixture
async def app(mock_catalog, fake_pool):
    """The real app with state injected. Lifespan is not run."""
    from services.airquality.config import settings
    from services.airquality.main import app as _app

    _app.state.settings = settings
    _app.state.db = fake_pool
    _app.state.catalog = mock_catalog
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
