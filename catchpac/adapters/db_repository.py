from datetime import datetime
from typing import Dict, Optional, List
from sqlmodel import select
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession

from catchpac.service.ports import AbstractRepository
from catchpac.models import CreateQuoteRequest, SubmitQuoteResponse
from shared.models_db import (
    Category,
    QuoteRequestTable,
    QuoteResponseTable,
    RequestStatus,
    SessionTable,
    UserRole,
    UserTable,
)
from shared.logging import get_logger

logger = get_logger(__name__)

class SQLModelRepository(AbstractRepository):
    """Concrete implementation of the repository using SQLModel and AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, row):
        self.session.add(row)
        await self.session.flush()  # Flush to assign IDs
        await self.session.refresh(row) # Refresh to get DB defaults
        # No commit here, transaction managed by the service
        return row

    # --- users ---

    async def add_user(self, user_id: str, email: str, name: str, company: str, role: UserRole) -> UserTable:
        logger.info(f"Adding {role.value} user profile {user_id}")
        db_user = UserTable(id=user_id, email=email, name=name, company=company, role=role, is_admin=False)
        return await self._save(db_user)

    async def get_user_by_id(self, user_id: str) -> Optional[UserTable]:
        logger.debug(f"Fetching user by ID: {user_id}")
        return await self.session.get(UserTable, user_id)

    async def find_users_by_email(self, email: str) -> List[UserTable]:
        logger.debug(f"Fetching users by email: {email}")
        result = await self.session.execute(select(UserTable).where(UserTable.email == email))
        return list(result.scalars().all())

    async def set_admin_flag(self, user_id: str, is_admin: bool) -> Optional[UserTable]:
        db_user = await self.get_user_by_id(user_id)
        if db_user is None:
            logger.warning(f"Attempted to set admin flag for non-existent user ID: {user_id}")
            return None
        db_user.is_admin = is_admin
        logger.info(f"User {user_id} admin flag set to {is_admin}")
        return await self._save(db_user)

    # --- sessions ---

    async def add_session(self, token: str, user_id: str, expires_at: datetime) -> SessionTable:
        logger.debug(f"Opening session for user {user_id}, expires at {expires_at}")
        return await self._save(SessionTable(token=token, user_id=user_id, expires_at=expires_at))

    async def get_session(self, token: str) -> Optional[SessionTable]:
        return await self.session.get(SessionTable, token)

    async def delete_session(self, token: str) -> None:
        db_session = await self.get_session(token)
        if db_session is not None:
            await self.session.delete(db_session)
            await self.session.flush()

    # --- quote requests ---

    async def add_quote_request(self, buyer_id: str, buyer_company: str, request_data: CreateQuoteRequest) -> QuoteRequestTable:
        logger.info(f"Adding quote request for buyer {buyer_id}: {request_data.partNumber} x {request_data.quantity}")
        db_request = QuoteRequestTable(
            buyer_id=buyer_id,
            buyer_company=buyer_company,
            category=request_data.category,
            maker=request_data.maker,
            part_number=request_data.partNumber,
            quantity=request_data.quantity,
            desired_delivery=request_data.desiredDelivery,
            note=request_data.note,
            status=RequestStatus.OPEN,
            is_anonymous=request_data.isAnonymous,
        )
        db_request = await self._save(db_request)
        logger.info(f"Quote request added/flushed with ID: {db_request.id}, created_at: {db_request.created_at}")
        return db_request

    async def get_quote_request(self, request_id: int) -> Optional[QuoteRequestTable]:
        logger.debug(f"Fetching quote request by ID: {request_id}")
        db_request = await self.session.get(QuoteRequestTable, request_id)
        if db_request is None:
            logger.debug(f"No quote request found with ID: {request_id}")
        return db_request

    async def list_quote_requests(
        self, buyer_id: Optional[str] = None, status: Optional[RequestStatus] = None
    ) -> List[QuoteRequestTable]:
        statement = select(QuoteRequestTable)
        if buyer_id is not None:
            statement = statement.where(QuoteRequestTable.buyer_id == buyer_id)
        if status is not None:
            statement = statement.where(QuoteRequestTable.status == status)
        statement = statement.order_by(QuoteRequestTable.created_at.desc(), QuoteRequestTable.id.desc())
        result = await self.session.execute(statement)
        requests = list(result.scalars().all())
        logger.debug(f"Found {len(requests)} quote requests (buyer={buyer_id}, status={status})")
        return requests

    async def close_quote_request(self, request_id: int) -> bool:
        # Conditional on OPEN so only one concurrent selection can win
        statement = (
            update(QuoteRequestTable)
            .where(QuoteRequestTable.id == request_id, QuoteRequestTable.status == RequestStatus.OPEN)
            .values(status=RequestStatus.CLOSED)
        )
        result = await self.session.execute(statement)
        if result.rowcount == 0:
            logger.warning(f"Quote request ID {request_id} was not OPEN, nothing closed")
            return False
        logger.info(f"Quote request ID {request_id} closed")
        return True

    # --- quote responses ---

    async def add_quote_response(
        self, request: QuoteRequestTable, seller_id: str, seller_company: str, response_data: SubmitQuoteResponse
    ) -> QuoteResponseTable:
        total_price = response_data.unitPrice * request.quantity
        logger.info(f"Adding quote response to request ID {request.id} from seller {seller_id}, total {total_price}")
        db_response = QuoteResponseTable(
            request_id=request.id,
            seller_id=seller_id,
            seller_company=seller_company,
            unit_price=response_data.unitPrice,
            total_price=total_price,
            delivery_days=response_data.deliveryDays,
            in_stock=response_data.inStock,
            note=response_data.note,
            is_selected=False,
        )
        db_response = await self._save(db_response)
        logger.info(f"Quote response added/flushed for request ID {request.id}, new response ID: {db_response.id}")
        return db_response

    async def get_quote_response(self, response_id: int) -> Optional[QuoteResponseTable]:
        return await self.session.get(QuoteResponseTable, response_id)

    async def list_quote_responses(
        self, request_id: Optional[int] = None, seller_id: Optional[str] = None
    ) -> List[QuoteResponseTable]:
        statement = select(QuoteResponseTable)
        if request_id is not None:
            statement = statement.where(QuoteResponseTable.request_id == request_id)
        if seller_id is not None:
            statement = statement.where(QuoteResponseTable.seller_id == seller_id)
        statement = statement.order_by(QuoteResponseTable.created_at.desc(), QuoteResponseTable.id.desc())
        result = await self.session.execute(statement)
        responses = list(result.scalars().all())
        logger.debug(f"Found {len(responses)} quote responses (request={request_id}, seller={seller_id})")
        return responses

    async def count_quote_responses(self, request_id: int) -> int:
        statement = select(func.count()).select_from(QuoteResponseTable).where(QuoteResponseTable.request_id == request_id)
        result = await self.session.execute(statement)
        return result.scalar_one()

    async def mark_quote_response_selected(self, response_id: int) -> Optional[QuoteResponseTable]:
        db_response = await self.get_quote_response(response_id)
        if db_response is None:
            logger.warning(f"Attempted to select non-existent quote response ID: {response_id}")
            return None
        db_response.is_selected = True
        logger.info(f"Quote response ID {response_id} marked as selected")
        return await self._save(db_response)

    async def list_request_categories(self) -> Dict[int, Category]:
        result = await self.session.execute(select(QuoteRequestTable.id, QuoteRequestTable.category))
        return {request_id: category for request_id, category in result.all()}
