"""
EcoPlate Backend — Test Configuration (conftest.py)
====================================================

Fixture Hierarchy (all function-scoped):
    ├── db_session:         real in-memory SQLite session with every table
    │   ├── make_user:      factory inserting users
    │   ├── make_product:   factory inserting fridge products
    │   └── current_user:   the user the HTTP clients act as
    ├── temp_storage:       temporary directory for upload tests
    ├── sample_image_bytes: smallest valid JPEG
    ├── test_client:        AsyncClient, DB and auth dependencies overridden
    └── anon_client:        AsyncClient, only the DB dependency overridden
"""

import os
import tempfile

# Must run before anything imports ecoplate.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["GOOGLE_MAPS_API_KEY"] = "test-maps-key"
os.environ["UPLOAD_ROOT"] = tempfile.mkdtemp(prefix="ecoplate_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"

from typing import Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ecoplate.auth import get_current_user  # noqa: E402
from ecoplate.database import build_engine, get_db_session, init_models  # noqa: E402
from ecoplate.models.product import Product  # noqa: E402
from ecoplate.models.user import User  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Files
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "uploads"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """Smallest valid JPEG: SOI + JFIF APP0 header + EOI."""
    return (
        b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
        b"\xff\xd9"
    )


# ══════════════════════════════════════════════════════════════════════════
# Real database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_session():
    """
    Session on a private in-memory SQLite database.

    StaticPool keeps the single connection alive so every query sees the
    same database.
    """
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def make_user(db_session):
    """Factory: `await make_user("alice")` inserts alice@example.com."""
    async def _make_user(
        name: str = "alice",
        email: Optional[str] = None,
        user_location: Optional[str] = None,
    ) -> User:
        user = User(
            email=email or f"{name}@example.com",
            # Not a real bcrypt hash; login tests register through the API
            password_hash="not-a-real-hash",
            name=name.capitalize(),
            user_location=user_location,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_product(db_session):
    async def _make_product(user: User, name: str = "Milk", **fields) -> Product:
        values = {"quantity": 1.0, "category": "dairy", "unit": "l", "unit_price": 2.5, "co2_emission": 1.2}
        values.update(fields)
        product = Product(user_id=user.id, product_name=name, **values)
        db_session.add(product)
        await db_session.flush()
        return product

    return _make_product


@pytest_asyncio.fixture
async def current_user(make_user):
    return await make_user("alice")


# ══════════════════════════════════════════════════════════════════════════
# HTTP clients
# ══════════════════════════════════════════════════════════════════════════

def _override_db(session: AsyncSession):
    async def _get_db_session():
        yield session
        await session.flush()

    return _get_db_session


@pytest_asyncio.fixture
async def test_client(db_session, current_user):
    """
    AsyncClient acting as `current_user`.

    Usage:
        response = await test_client.get("/api/v1/myfridge/products")
    """
    from ecoplate.main import app

    app.dependency_overrides[get_db_session] = _override_db(db_session)
    app.dependency_overrides[get_current_user] = lambda: current_user
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def anon_client(db_session):
    """AsyncClient with real bearer-token authentication."""
    from ecoplate.main import app

    app.dependency_overrides[get_db_session] = _override_db(db_session)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
