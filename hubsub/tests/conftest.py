import os
from unittest.mock import AsyncMock

import pytest
from dotenv import load_dotenv

load_dotenv()

# Tests run against a throwaway SQLite file unless the environment says otherwise
os.environ.setdefault("DATABASE_URL", "sqlite:///./hubsub_test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

FEED_URL = "http://www.polygon.com/rss/index.xml"
HUB_URL = "https://pubsubhubbub.superfeedr.com"
SECRET = "supersecretstring"


@pytest.fixture(scope="session")
def db_engine():
    """The sync engine, with every model registered on Base."""
    from hubsub.db.session import engine
    from hubsub.models import event, subscription, subscription_log  # noqa: F401

    yield engine


@pytest.fixture(scope="function")
def tables(db_engine):
    """Fresh tables for every test."""
    from hubsub.db.session import Base

    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)
    yield
    Base.metadata.drop_all(bind=db_engine)


@pytest.fixture(scope="function")
async def session_factory(tables):
    """Async sessionmaker on a per-test engine, so no pooled connection outlives its event loop."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlalchemy.pool import NullPool
    from hubsub.db.session import ASYNC_DATABASE_URL

    async_engine = create_async_engine(ASYNC_DATABASE_URL, poolclass=NullPool)
    yield async_sessionmaker(async_engine, expire_on_commit=False)
    await async_engine.dispose()


@pytest.fixture(scope="function", autouse=True)
def queued_jobs(mocker):
    """Keep RQ jobs off Redis; returns the mocked `enqueue`."""
    from hubsub.queue.redis_conn import hub_queue

    mocker.patch.object(hub_queue, "enqueue_in")
    return mocker.patch.object(hub_queue, "enqueue")


@pytest.fixture(scope="function")
def hub_client():
    """Hub client double: every hub request is accepted and the feed serves a small RSS document."""
    from hubsub.hub_client import FetchedFeed, HubClient

    client = AsyncMock(spec=HubClient)
    client.subscribe.return_value = 202
    client.unsubscribe.return_value = 202
    client.fetch.return_value = FetchedFeed(
        content_type="application/rss+xml",
        body=b"<rss><channel><title>Polygon</title></channel></rss>",
    )
    return client


@pytest.fixture(scope="function")
def scheduled_seeds():
    """Subscription ids handed to the seed scheduler."""
    return []


@pytest.fixture(scope="function")
def controller(session_factory, hub_client, scheduled_seeds):
    from hubsub.wiring import build_controller

    return build_controller(
        session_factory,
        schedule_seed=scheduled_seeds.append,
        hub_client=hub_client,
    )


@pytest.fixture(scope="function")
def make_subscription(session_factory):
    """Insert a subscription row; keyword arguments override the defaults."""
    from hubsub.models.subscription import Subscription

    async def _make(**overrides):
        fields = {
            "feed_url": FEED_URL,
            "hub_url": HUB_URL,
            "secret": SECRET,
            "expected_receive_period_in_days": 1,
        }
        fields.update(overrides)
        async with session_factory() as session:
            sub = Subscription(**fields)
            session.add(sub)
            await session.commit()
            await session.refresh(sub)
            return sub

    return _make


@pytest.fixture(scope="function")
async def client(session_factory, controller):
    """Provides an async HTTP client for testing with DB and controller overrides."""
    import httpx
    from hubsub.api.main import app
    from hubsub.api.deps import get_async_db, get_controller

    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    app.dependency_overrides[get_controller] = lambda: controller

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides = {}
