import os
import tempfile
from pathlib import Path

import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Configure test environment before the app reads it
_TMP = Path(tempfile.mkdtemp(prefix='eventfeed-tests-'))
os.environ.setdefault('DATABASE_URL', f"sqlite+aiosqlite:///{_TMP / 'test.sqlite'}")
os.environ.setdefault('JWT_SECRET', 'test-secret')
os.environ.setdefault('STOPS_FEED_URL', 'http://feed.test/stops')

from eventfeed import crud  # noqa: E402
from eventfeed.cache import ResponseCache  # noqa: E402
from eventfeed.main import app  # noqa: E402
from eventfeed.models import Base, engine  # noqa: E402


@pytest_asyncio.fixture
async def db():
    """Fresh schema for every test"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def user(db):
    return await crud.create_user('alice', 'alice@example.com', 'SuperSecret123')


@pytest_asyncio.fixture
async def event(db, user):
    return await crud.create_event('stop-1', 'delay', 'Tram 5 is late', created_by=user.id)


@pytest_asyncio.fixture
async def client(db):
    app.state.feed_cache = ResponseCache(ttl=300)
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as ac:
        yield ac
