"""Shared fixtures: isolated database, uploads/theme directories and settings."""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from stage_proxy.db import Base
from stage_proxy.models import Option, Transient  # noqa: F401
from stage_proxy.settings import Settings
from stage_proxy.topology import Topology
from tests.fixtures.fakes import FakeFetcher

REMOTE = "https://prod.example.com"
LOCAL = "http://local.test/wp-content/uploads"


@pytest.fixture(scope="function")
async def session_factory(tmp_path):
    """Create a throwaway database with all tables."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def uploads_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def theme_dir(tmp_path):
    path = tmp_path / "theme"
    path.mkdir()
    return path


@pytest.fixture
def pool_dir(theme_dir):
    """Default fallback pool directory (THEME_DIR/sfp-images)."""
    path = theme_dir / "sfp-images"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(uploads_dir, theme_dir):
    """Root install at http://local.test, origin pinned by environment override."""
    return Settings(
        _env_file=None,
        HOME_URL="http://local.test",
        SITE_URL="http://local.test",
        UPLOADS_BASE_DIR=str(uploads_dir),
        THEME_DIR=str(theme_dir),
        STAGE_FILE_PROXY_URL=REMOTE,
        STAGE_FILE_PROXY_MODE=None,
        STAGE_FILE_PROXY_LOCAL_DIR=None,
    )


@pytest.fixture
def topology(test_settings):
    return Topology.from_settings(test_settings)


@pytest.fixture
def fetcher():
    return FakeFetcher()
