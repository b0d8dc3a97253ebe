import os
import tempfile

# configure before storefront_hub.settings is imported
os.environ.setdefault("DATA_ROOT", tempfile.mkdtemp(prefix="storefront-test-"))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from storefront_hub import db_models  # noqa: F401  (registers tables)
from storefront_hub.database import Base, make_session_factory
from storefront_hub.services.notifications import drain_notifications

from factories import Seeder


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await drain_notifications()
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(db):
    return Seeder(db)
