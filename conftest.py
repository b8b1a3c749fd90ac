import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

# Load .env.test for tests if present (e.g. TEST_DATABASE_URL for Postgres)
from dotenv import load_dotenv

env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.config import Database
from services.store_service import models as _store_models  # noqa: F401
from services.store_service.app.main import create_app
from services.store_service.models import UserRole
from services.store_service.services import build_store_core
from tests.factories import (
    CategoryFactory,
    ProductFactory,
    RecordingImageStorage,
    SubcategoryFactory,
    UserFactory,
    make_auth_user,
    override_auth,
)

# Clear cached settings to reload with new env vars
get_settings.cache_clear()


def _test_database_url(tmp_path) -> str:
    url = os.environ.get("TEST_DATABASE_URL")
    if url:
        return url
    return f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """
    Open a Database with a fresh schema for one test.

    Uses TEST_DATABASE_URL when set, otherwise a throwaway SQLite file.
    """
    db = Database(_test_database_url(tmp_path))
    db.open()

    try:
        async with db.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    except OperationalError:
        await db.close()
        pytest.skip("Database not available for tests")

    yield db

    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db.close()


@pytest.fixture
def is_sqlite(database) -> bool:
    return database.engine.dialect.name == "sqlite"


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; operations under test commit through atomic()."""
    session = database.session()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def session_factory(database):
    """Open extra independent sessions, e.g. to play a concurrent request."""
    return database.session


@pytest.fixture
def image_storage() -> RecordingImageStorage:
    return RecordingImageStorage()


@pytest.fixture
def store(image_storage):
    return build_store_core(image_storage)


# ---------------------------------------------------------------------------
# Data fixtures
# ---------------------------------------------------------------------------


async def _persist(database, *instances):
    """
    Insert rows through their own session.

    The returned instances are detached, so a rollback in ``db_session`` never
    expires them.
    """
    async with database.session() as session:
        for instance in instances:
            session.add(instance)
            await session.flush()
        await session.commit()
    return instances


@pytest_asyncio.fixture
async def customer(database):
    (user,) = await _persist(database, UserFactory.create(name="Casey Customer"))
    return user


@pytest_asyncio.fixture
async def admin(database):
    (user,) = await _persist(
        database, UserFactory.create(name="Ada Admin", role=UserRole.ADMIN)
    )
    return user


@pytest_asyncio.fixture
async def catalog(database):
    """One active category with one active subcategory."""
    async with database.session() as session:
        category = CategoryFactory.create(name="Electronics")
        session.add(category)
        await session.flush()
        subcategory = SubcategoryFactory.create(category.id, name="Phones")
        session.add(subcategory)
        await session.commit()
    return category, subcategory


@pytest.fixture
def make_product(database, catalog):
    """Insert an active product under the ``catalog`` fixture."""
    category, subcategory = catalog

    async def _make(**overrides):
        (product,) = await _persist(
            database, ProductFactory.create(category.id, subcategory.id, **overrides)
        )
        return product

    return _make


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def app(database, store):
    """
    The store app bound to the test database.

    ASGITransport does not run the lifespan, so state is attached directly.
    """
    application = create_app(database)
    application.state.db = database
    application.state.store = store
    return application


@pytest_asyncio.fixture
async def client(app, customer) -> AsyncGenerator[AsyncClient, None]:
    """Yield an AsyncClient authenticated as ``customer``."""
    with override_auth(app, make_auth_user(customer.id)):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_client(app, admin) -> AsyncGenerator[AsyncClient, None]:
    """Yield an AsyncClient authenticated as ``admin``."""
    with override_auth(app, make_auth_user(admin.id, role="admin")):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    app.dependency_overrides.clear()
