import os

# Point settings at an in-memory database before anything imports shared.settings
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")
os.environ.setdefault("IDENTITY_API_KEY", "test-api-key")
os.environ.setdefault("IDENTITY_BASE_URL", "https://identity.test/v1")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlmodel import SQLModel

from catchpac.service.context import UserContext
from catchpac.tests.factories import make_user_context
from shared.db import build_engine
from shared.models_db import UserRole


@pytest_asyncio.fixture(scope="function")
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    # Fresh in-memory database per test
    test_engine = build_engine("sqlite+aiosqlite://")
    async with test_engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSession(engine, expire_on_commit=False, autoflush=False) as session:
        yield session


@pytest.fixture
def buyer_context() -> UserContext:
    return make_user_context("buyer-1", UserRole.BUYER, "대한정밀")


@pytest.fixture
def seller_context() -> UserContext:
    return make_user_context("seller-1", UserRole.SELLER, "한국서보상사")
