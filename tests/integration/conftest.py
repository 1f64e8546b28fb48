import pytest
import pytest_asyncio
import httpx
import uuid
from typing import AsyncGenerator, Dict, Tuple
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from catchpac.main import app, get_identity_provider
from catchpac.service.errors import IdentityError, IdentityErrorCode, WRONG_PASSWORD_MESSAGE
from catchpac.service.ports import AbstractIdentityProvider
from shared.db import get_async_session


class InMemoryIdentityProvider(AbstractIdentityProvider):
    """Stands in for the hosted identity service; accounts live for one test."""

    def __init__(self):
        self.accounts: Dict[str, Tuple[str, str]] = {}

    async def create_account(self, email: str, password: str) -> str:
        if email in self.accounts:
            raise IdentityError(IdentityErrorCode.EMAIL_IN_USE, "EMAIL_EXISTS")
        user_id = uuid.uuid4().hex
        self.accounts[email] = (user_id, password)
        return user_id

    async def verify_credentials(self, email: str, password: str) -> str:
        if email not in self.accounts:
            raise IdentityError(IdentityErrorCode.USER_NOT_FOUND, "EMAIL_NOT_FOUND")
        user_id, stored_password = self.accounts[email]
        if password != stored_password:
            raise IdentityError(IdentityErrorCode.INVALID_CREDENTIAL, "INVALID_PASSWORD", WRONG_PASSWORD_MESSAGE)
        return user_id


@pytest.fixture
def identity_provider() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider()


@pytest_asyncio.fixture(scope="function")
async def http_client(engine: AsyncEngine, identity_provider: InMemoryIdentityProvider) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with AsyncSession(engine, expire_on_commit=False, autoflush=False) as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://catchpac.test") as client:
        yield client
    app.dependency_overrides.clear()
