import secrets
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import RegisterRequest
from .context import UserContext
from .errors import (
    AuthenticationRequiredError,
    IdentityError,
    IdentityErrorCode,
    LOGIN_FALLBACK_MESSAGE,
    REGISTER_FALLBACK_MESSAGE,
    RegistrationValidationError,
)
from .ports import AbstractIdentityProvider, AbstractRepository
from shared.models_db import SessionTable, UserTable, utc_now
from shared.settings import settings
from shared.logging import get_logger

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthService:
    """Registration, sign-in and the session lifecycle (open on sign-in, drop on sign-out)."""

    def __init__(
        self,
        identity_provider: AbstractIdentityProvider,
        db_repository: AbstractRepository,
        session: AsyncSession,
        session_ttl: Optional[timedelta] = None,
    ):
        self.identity_provider = identity_provider
        self.db_repository = db_repository
        self.session = session
        self.session_ttl = session_ttl or timedelta(hours=settings.SESSION_TTL_HOURS)

    async def register(self, payload: RegisterRequest) -> Tuple[SessionTable, UserTable]:
        if payload.password != payload.passwordConfirm:
            raise RegistrationValidationError("비밀번호가 일치하지 않습니다")
        if len(payload.password) < MIN_PASSWORD_LENGTH:
            raise RegistrationValidationError(f"비밀번호는 {MIN_PASSWORD_LENGTH}자 이상이어야 합니다")

        try:
            user_id = await self.identity_provider.create_account(payload.email, payload.password)
        except IdentityError as e:
            raise e.with_fallback(REGISTER_FALLBACK_MESSAGE)

        try:
            user = await self.db_repository.add_user(
                user_id=user_id,
                email=payload.email,
                name=payload.name,
                company=payload.company,
                role=payload.userType,
            )
            user_session = await self._open_session(user.id)
            await self.session.commit()
        except Exception as e:
            logger.error(f"Failed to store profile for new account {user_id}: {e}", exc_info=True)
            await self.session.rollback()
            raise
        logger.info(f"Registered {user.role.value} {user.id} ({user.company})")
        return user_session, user

    async def login(self, email: str, password: str) -> Tuple[SessionTable, UserTable]:
        try:
            user_id = await self.identity_provider.verify_credentials(email, password)
        except IdentityError as e:
            raise e.with_fallback(LOGIN_FALLBACK_MESSAGE)

        user = await self.db_repository.get_user_by_id(user_id)
        if user is None:
            # Account exists at the provider but has no profile
            logger.warning(f"No profile for authenticated user {user_id}")
            raise IdentityError(IdentityErrorCode.USER_NOT_FOUND, "profile missing")

        user_session = await self._open_session(user.id)
        await self.session.commit()
        logger.info(f"User {user.id} signed in")
        return user_session, user

    async def logout(self, user: UserContext) -> None:
        await self.db_repository.delete_session(user.session_token)
        await self.session.commit()
        logger.info(f"User {user.user_id} signed out")

    async def resolve_session(self, token: Optional[str]) -> UserContext:
        if not token:
            raise AuthenticationRequiredError()
        user_session = await self.db_repository.get_session(token)
        if user_session is None:
            logger.debug("Unknown session token")
            raise AuthenticationRequiredError()
        if user_session.expires_at <= utc_now():
            logger.info(f"Session for user {user_session.user_id} expired at {user_session.expires_at}")
            await self.db_repository.delete_session(token)
            await self.session.commit()
            raise AuthenticationRequiredError()
        user = await self.db_repository.get_user_by_id(user_session.user_id)
        if user is None:
            raise AuthenticationRequiredError()
        return UserContext.from_user(user, session_token=token)

    async def _open_session(self, user_id: str) -> SessionTable:
        token = secrets.token_urlsafe(32)
        return await self.db_repository.add_session(token, user_id, utc_now() + self.session_ttl)
