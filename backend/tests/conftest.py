# @TASK P0-T0.3 - Test configuration
import itertools
import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment variables before importing quillpress modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

_slug_counter = itertools.count(1)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async session on a fresh in-memory database.

    A StaticPool keeps the single in-memory connection alive for the
    whole test, so every session sees the same tables.
    """
    from quillpress.config import Settings
    from quillpress.database import Base, engine_options
    import quillpress.models  # noqa: F401 - Import to register models with Base

    engine = create_async_engine(TEST_DATABASE_URL, **engine_options(Settings(DATABASE_URL=TEST_DATABASE_URL)))
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_app(test_db: AsyncSession):
    """Provide the FastAPI app with the test database injected."""
    from quillpress.main import app
    from quillpress.database import get_db

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing with test database."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def transactional_client(test_db: AsyncSession, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests get their own session from the real ``get_db``.

    Requests share the test database but commit or roll back on their
    own, so seed rows must be committed before the request.
    """
    import quillpress.database as database
    from quillpress.main import app

    monkeypatch.setattr(
        database,
        "async_session_factory",
        async_sessionmaker(bind=test_db.bind, class_=AsyncSession, expire_on_commit=False),
    )
    app.dependency_overrides.clear()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def make_auth_headers(sub: str = "admin@example.com", user_id: int = 1) -> dict[str, str]:
    """Create Authorization headers with a valid access token."""
    from quillpress.services.auth_service import create_access_token

    token = create_access_token(data={"sub": sub, "user_id": user_id, "name": "Admin"})
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------


async def seed_post(
    db: AsyncSession,
    *,
    title: str = "Post",
    slug: str | None = None,
    content: str = "",
    excerpt: str | None = None,
    status: str = "published",
    category=None,
    tags=(),
    allow_comment: bool = True,
):
    """Insert a post (with optional category and tags) and return it."""
    from quillpress.models import Post, PostTag

    post = Post(
        title=title,
        slug=slug or f"post-{next(_slug_counter)}",
        content=content,
        excerpt=excerpt,
        status=status,
        allow_comment=allow_comment,
        category_id=category.id if category is not None else None,
    )
    db.add(post)
    await db.flush()
    for tag in tags:
        db.add(PostTag(post_id=post.id, tag_id=tag.id))
    await db.flush()
    return post


async def seed_category(db: AsyncSession, name: str, slug: str | None = None):
    from quillpress.models import Category

    category = Category(name=name, slug=slug or name.lower().replace(" ", "-"))
    db.add(category)
    await db.flush()
    return category


async def seed_tag(db: AsyncSession, name: str, slug: str | None = None):
    from quillpress.models import Tag

    tag = Tag(name=name, slug=slug or name.lower().replace(" ", "-"))
    db.add(tag)
    await db.flush()
    return tag


async def seed_comment(
    db: AsyncSession,
    post,
    *,
    content: str = "comment",
    parent=None,
    status: str = "approved",
    author_name: str = "Reader",
):
    from quillpress.models import Comment

    comment = Comment(
        post_id=post.id,
        parent_id=parent.id if parent is not None else None,
        author_name=author_name,
        author_email="reader@example.com",
        content=content,
        status=status,
    )
    db.add(comment)
    await db.flush()
    return comment
