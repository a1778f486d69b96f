"""Pytest configuration and fixtures."""
import os
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest
from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Ensure the application uses a dedicated SQLite database during tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["ENVIRONMENT"] = "test"
# The maintenance loop is exercised directly, never from the app lifespan
os.environ["SESSION_MAINTENANCE_ENABLED"] = "false"

from mapveto.config import get_settings


BASE_DIR = Path(__file__).resolve().parent.parent
TEST_DB_PATH = BASE_DIR / "test.db"
settings = get_settings()


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Apply database migrations against the test database."""
    if TEST_DB_PATH.exists():
        try:
            TEST_DB_PATH.unlink()
        except PermissionError:
            pass  # Migrations will still run against the existing file

    alembic_cfg = AlembicConfig(str(BASE_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(alembic_cfg, "head")

    yield

    if TEST_DB_PATH.exists():
        try:
            TEST_DB_PATH.unlink()
        except PermissionError:
            # Still in use; it will be replaced on the next run
            pass


@pytest.fixture
async def test_engine():
    """Create test database engine using the same database as migrations."""
    engine = create_async_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
    )

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()
        await session.close()


@pytest.fixture
async def test_app(test_engine):
    """Create test app with database override."""
    from mapveto.main import app
    from mapveto.database import get_db

    async def override_get_db():
        async_session = async_sessionmaker(
            test_engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        async with async_session() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def admin_factory(db_session):
    """Factory for creating admins with unique emails."""
    from mapveto.models import Admin

    async def _create_admin(name: str | None = None):
        unique_id = uuid.uuid4().hex[:8]
        admin = Admin(
            admin_id=uuid.uuid4(),
            email=f"admin_{unique_id}@example.com",
            name=name or f"Admin {unique_id}",
        )
        db_session.add(admin)
        await db_session.commit()
        return admin

    return _create_admin


@pytest.fixture
async def team_factory(db_session):
    """Factory for creating registered teams with unique names."""
    from mapveto.models import Team

    async def _create_team(name: str | None = None):
        team = Team(
            team_id=uuid.uuid4(),
            name=name or f"Team {uuid.uuid4().hex[:8]}",
        )
        db_session.add(team)
        await db_session.commit()
        return team

    return _create_team


@pytest.fixture
async def map_factory(db_session):
    """Factory for creating master maps."""
    from mapveto.models import Map

    async def _create_map(
        name: str | None = None,
        is_active: bool = True,
        image_url: str | None = None,
        image_storage_id: str | None = None,
    ):
        unique_id = uuid.uuid4().hex[:8]
        game_map = Map(
            map_id=uuid.uuid4(),
            name=name or f"Map {unique_id}",
            image_url=image_url if image_url is not None else f"https://img.example.com/{unique_id}.png",
            image_storage_id=image_storage_id,
            is_active=is_active,
        )
        db_session.add(game_map)
        await db_session.commit()
        return game_map

    return _create_map


@pytest.fixture
async def session_factory(db_session, admin_factory):
    """Factory for creating DRAFT sessions through the session engine."""
    from mapveto.services import SessionService

    async def _create_session(
        format: str = "ABBA",
        player_count: int = 2,
        map_pool_size: int = 3,
        turn_timer_seconds: int | None = None,
        match_name: str | None = None,
    ):
        admin = await admin_factory()
        return await SessionService(db_session).create_session(
            match_name=match_name or f"Match {uuid.uuid4().hex[:6]}",
            format=format,
            player_count=player_count,
            turn_timer_seconds=turn_timer_seconds,
            map_pool_size=map_pool_size,
            created_by=admin.admin_id,
        )

    return _create_session


@pytest.fixture
async def veto_factory(db_session, session_factory, team_factory, map_factory):
    """Factory for fully configured sessions.

    Returns a namespace with ``session``, ``players`` (seat order), ``maps``
    (pool order snapshots) and ``master_maps``. By default the session is
    finalized and started so it is ready for bans or votes.
    """
    from mapveto.services import SessionService

    async def _create_veto(
        format: str = "ABBA",
        player_count: int = 2,
        map_pool_size: int = 3,
        start: bool = True,
    ):
        service = SessionService(db_session)
        session = await session_factory(
            format=format,
            player_count=player_count,
            map_pool_size=map_pool_size,
        )

        players = []
        for seat in range(player_count):
            team = await team_factory()
            players.append(await service.assign_player(session.session_id, f"P{seat + 1}", team.name))

        master_maps = [await map_factory() for _ in range(map_pool_size)]
        maps = await service.set_session_maps(
            session.session_id, [m.map_id for m in master_maps]
        )

        if start:
            await service.finalize_session(session.session_id)
            session = await service.start_session(session.session_id)

        return SimpleNamespace(
            session=session,
            players=players,
            maps=maps,
            master_maps=master_maps,
        )

    return _create_veto
