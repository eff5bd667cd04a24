"""
Pytest configuration and fixtures.

Provides fixtures for:
- Database sessions on an in-memory SQLite database
- HTTP client wired to the test session
- Test users (as principals) with auth headers
- Content rows that can be reported and hidden
"""
from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from townsquare.core.principal import Principal
from townsquare.db.base import Base
from townsquare.db.session import get_db
from townsquare.main import app
from townsquare.models import Comment, Post, User, UserRole, UserStatus
from townsquare.services.auth import create_access_token

# Use SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
    )

    # pysqlite defers BEGIN, which breaks SAVEPOINT handling; emit it ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client bound to the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# -----------------------------------------------------------------------------
# User Fixtures
# -----------------------------------------------------------------------------

UserFactory = Callable[..., Awaitable[Principal]]


@pytest.fixture
def make_user(db_session) -> UserFactory:
    """
    Factory creating a committed user and returning its principal.

    Tests hold principals rather than ORM rows; rows are expired whenever a
    service rolls back.
    """

    async def _make(
        username: str,
        role: str = UserRole.USER.value,
        status: str = UserStatus.ACTIVE.value,
        **kwargs,
    ) -> Principal:
        user = User(username=username, role=role, status=status, **kwargs)
        db_session.add(user)
        await db_session.commit()
        return Principal.from_user(user)

    return _make


@pytest_asyncio.fixture
async def alice(make_user) -> Principal:
    return await make_user("alice")


@pytest_asyncio.fixture
async def bob(make_user) -> Principal:
    return await make_user("bob")


@pytest_asyncio.fixture
async def carol(make_user) -> Principal:
    return await make_user("carol")


@pytest_asyncio.fixture
async def admin(make_user) -> Principal:
    return await make_user("moderator", role=UserRole.ADMIN.value)


@pytest.fixture
def auth_headers() -> Callable[[Principal], dict]:
    """Build bearer headers for a principal."""

    def _headers(principal: Principal) -> dict:
        token = create_access_token(principal.id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# -----------------------------------------------------------------------------
# Content Fixtures
# -----------------------------------------------------------------------------

@pytest_asyncio.fixture
async def post_id(db_session, bob) -> int:
    """A post authored by bob."""
    post = Post(author_id=bob.id, title="Hello", body="First post")
    db_session.add(post)
    await db_session.commit()
    return post.id


@pytest_asyncio.fixture
async def comment_id(db_session, post_id, carol) -> int:
    """A comment by carol on bob's post."""
    comment = Comment(post_id=post_id, author_id=carol.id, body="Nice post")
    db_session.add(comment)
    await db_session.commit()
    return comment.id
