from fastapi import FastAPI, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from typing import List, Optional
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession # For DB session type hint

from .models import (
    CategoryPrice,
    CreatedResource,
    CreateQuoteRequest,
    LoginRequest,
    QuoteRequestDetail,
    QuoteRequestListItem,
    RegisterRequest,
    SellerQuote,
    SessionResponse,
    SortBy,
    SubmitQuoteResponse,
    SubmittedQuote,
    UserProfile,
)
from .adapters.db_repository import SQLModelRepository
from .adapters.identity_client import IdentityToolkitClient
from .service.auth_service import AuthService
from .service.context import UserContext
from .service.errors import CatchpacError
from .service.ports import AbstractIdentityProvider, AbstractRepository
from .service.pricing_service import PricingService
from .service.request_service import QuoteRequestService
from .service.response_service import QuoteResponseService
from shared.settings import settings
from shared.logging import get_logger
from shared.db import create_db_and_tables, close_db_connection, get_async_session

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.APP_NAME} starting up...")
    await create_db_and_tables()
    yield
    logger.info(f"{settings.APP_NAME} shutting down...")
    await close_db_connection()

app = FastAPI(
    title=settings.APP_NAME,
    version="v1",
    lifespan=lifespan
)


@app.exception_handler(CatchpacError)
async def catchpac_error_handler(request: Request, exc: CatchpacError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "요청을 처리하지 못했습니다", "code": "database_error"},
    )


# --- Dependencies ---

def get_db_repository(session: AsyncSession = Depends(get_async_session)) -> AbstractRepository:
    return SQLModelRepository(session)

def get_identity_provider() -> AbstractIdentityProvider:
    return IdentityToolkitClient()

def get_auth_service(
    identity_provider: AbstractIdentityProvider = Depends(get_identity_provider),
    db_repo: AbstractRepository = Depends(get_db_repository),
    session: AsyncSession = Depends(get_async_session),
) -> AuthService:
    return AuthService(identity_provider=identity_provider, db_repository=db_repo, session=session)

def get_request_service(
    db_repo: AbstractRepository = Depends(get_db_repository),
    session: AsyncSession = Depends(get_async_session),
) -> QuoteRequestService:
    return QuoteRequestService(db_repository=db_repo, session=session)

def get_response_service(
    db_repo: AbstractRepository = Depends(get_db_repository),
    session: AsyncSession = Depends(get_async_session),
) -> QuoteResponseService:
    return QuoteResponseService(db_repository=db_repo, session=session)

def get_pricing_service(db_repo: AbstractRepository = Depends(get_db_repository)) -> PricingService:
    return PricingService(db_repository=db_repo)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer":
        return token.strip() or None
    return authorization.strip() or None # Bare token without the "Bearer " prefix

async def get_current_user(
    authorization_header: Optional[str] = Header(None, alias="Authorization"),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserContext:
    return await auth_service.resolve_session(bearer_token(authorization_header))


def _session_response(user_session, user) -> SessionResponse:
    return SessionResponse(token=user_session.token, expiresAt=user_session.expires_at, user=UserProfile.from_table(user))


# --- Accounts ---

@app.post("/auth/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    logger.info(f"Registration request for a {payload.userType.value} account")
    user_session, user = await auth_service.register(payload)
    return _session_response(user_session, user)

@app.post("/auth/login", response_model=SessionResponse)
async def login(payload: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    user_session, user = await auth_service.login(payload.email, payload.password)
    return _session_response(user_session, user)

@app.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    user: UserContext = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.logout(user)

@app.get("/auth/me", response_model=UserProfile)
async def me(user: UserContext = Depends(get_current_user)):
    return UserProfile(
        id=user.user_id,
        email=user.email,
        name=user.name,
        company=user.company,
        userType=user.role,
        isAdmin=user.is_admin,
    )


# --- Quote requests ---

@app.post("/requests", response_model=CreatedResource, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: CreateQuoteRequest,
    user: UserContext = Depends(get_current_user),
    request_service: QuoteRequestService = Depends(get_request_service),
):
    request_id = await request_service.create_request(user, payload)
    return CreatedResource(id=request_id)

@app.get("/requests", response_model=List[QuoteRequestListItem])
async def list_requests(
    user: UserContext = Depends(get_current_user),
    request_service: QuoteRequestService = Depends(get_request_service),
):
    return await request_service.list_requests(user)

@app.get("/requests/{request_id}", response_model=QuoteRequestDetail)
async def get_request(
    request_id: int,
    sort: SortBy = SortBy.PRICE,
    user: UserContext = Depends(get_current_user),
    request_service: QuoteRequestService = Depends(get_request_service),
):
    return await request_service.get_detail(user, request_id, sort)

@app.post("/requests/{request_id}/responses/{response_id}/select", response_model=QuoteRequestDetail)
async def select_response(
    request_id: int,
    response_id: int,
    sort: SortBy = SortBy.PRICE,
    user: UserContext = Depends(get_current_user),
    request_service: QuoteRequestService = Depends(get_request_service),
):
    return await request_service.select_response(user, request_id, response_id, sort)


# --- Quote responses ---

@app.post("/requests/{request_id}/responses", response_model=SubmittedQuote, status_code=status.HTTP_201_CREATED)
async def submit_response(
    request_id: int,
    payload: SubmitQuoteResponse,
    user: UserContext = Depends(get_current_user),
    response_service: QuoteResponseService = Depends(get_response_service),
):
    return await response_service.submit_response(user, request_id, payload)

@app.get("/my-quotes", response_model=List[SellerQuote])
async def my_quotes(
    user: UserContext = Depends(get_current_user),
    response_service: QuoteResponseService = Depends(get_response_service),
):
    return await response_service.list_seller_quotes(user)


# --- Market prices ---

@app.get("/prices", response_model=List[CategoryPrice])
async def price_overview(pricing_service: PricingService = Depends(get_pricing_service)):
    return await pricing_service.get_price_overview()
