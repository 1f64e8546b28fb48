from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import QuoteRequestView, QuoteResponseView, SellerQuote, SubmitQuoteResponse, SubmittedQuote
from .context import UserContext
from .errors import DuplicateResponseError, NotFoundError, PermissionDeniedError, RequestClosedError
from .ports import AbstractRepository
from shared.models_db import QuoteRequestTable, RequestStatus
from shared.logging import get_logger

logger = get_logger(__name__)


class QuoteResponseService:
    def __init__(self, db_repository: AbstractRepository, session: AsyncSession):
        self.db_repository = db_repository
        self.session = session

    async def submit_response(self, user: UserContext, request_id: int, payload: SubmitQuoteResponse) -> SubmittedQuote:
        """
        Records a seller's quote against an OPEN request, one per seller per request.
        Returns the new response plus the request's full response list, newest first.
        """
        if not user.is_seller:
            logger.warning(f"User {user.user_id} ({user.role.value}) tried to submit a quote")
            raise PermissionDeniedError("판매자만 견적을 제출할 수 있습니다")

        db_request = await self.db_repository.get_quote_request(request_id)
        if db_request is None:
            raise NotFoundError("견적 요청을 찾을 수 없습니다")
        if db_request.status != RequestStatus.OPEN:
            logger.warning(f"Seller {user.user_id} tried to quote closed request {request_id}")
            raise RequestClosedError(request_id)

        existing = await self.db_repository.list_quote_responses(request_id=request_id, seller_id=user.user_id)
        if existing:
            logger.warning(f"Seller {user.user_id} already quoted request {request_id}")
            raise DuplicateResponseError(request_id, user.user_id)

        try:
            db_response = await self.db_repository.add_quote_response(db_request, user.user_id, user.company, payload)
            await self.session.commit()
        except IntegrityError as e:
            # A concurrent submission from the same seller won the unique constraint
            logger.warning(f"Duplicate quote from seller {user.user_id} for request {request_id}: {e}")
            await self.session.rollback()
            raise DuplicateResponseError(request_id, user.user_id) from e
        except Exception as e:
            logger.error(f"Error submitting quote for request {request_id}: {e}", exc_info=True)
            await self.session.rollback()
            raise

        logger.info(f"Seller {user.user_id} quoted request {request_id}: {db_response.unit_price} x {db_request.quantity} = {db_response.total_price}")
        responses = await self.db_repository.list_quote_responses(request_id=request_id)
        return SubmittedQuote(
            response=QuoteResponseView.from_table(db_response),
            responses=[QuoteResponseView.from_table(row) for row in responses],
        )

    async def list_seller_quotes(self, user: UserContext) -> List[SellerQuote]:
        """A seller's own quotes, newest first, each with its parent request when it still exists."""
        if not user.is_seller:
            raise PermissionDeniedError("판매자만 이용할 수 있습니다")

        responses = await self.db_repository.list_quote_responses(seller_id=user.user_id)
        requests: Dict[int, Optional[QuoteRequestTable]] = {}
        quotes = []
        for db_response in responses:
            if db_response.request_id not in requests:
                requests[db_response.request_id] = await self.db_repository.get_quote_request(db_response.request_id)
            db_request = requests[db_response.request_id]
            quotes.append(SellerQuote(
                **QuoteResponseView.from_table(db_response).model_dump(),
                request=QuoteRequestView.from_table(db_request, mask_buyer=True) if db_request else None,
            ))
        return quotes
