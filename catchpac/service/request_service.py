from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    CreateQuoteRequest,
    QuoteRequestDetail,
    QuoteRequestListItem,
    QuoteRequestView,
    QuoteResponseView,
    SortBy,
)
from .context import UserContext
from .errors import NotFoundError, PermissionDeniedError, RequestClosedError
from .ports import AbstractRepository
from .ranking import rank_responses
from shared.models_db import QuoteRequestTable, RequestStatus
from shared.logging import get_logger

logger = get_logger(__name__)


class QuoteRequestService:
    def __init__(self, db_repository: AbstractRepository, session: AsyncSession):
        self.db_repository = db_repository
        self.session = session

    async def create_request(self, user: UserContext, payload: CreateQuoteRequest) -> int:
        """Posts a new OPEN request for a buyer and returns its id."""
        if not user.is_buyer:
            logger.warning(f"User {user.user_id} ({user.role.value}) tried to create a quote request")
            raise PermissionDeniedError("구매자만 견적을 요청할 수 있습니다")

        try:
            db_request = await self.db_repository.add_quote_request(user.user_id, user.company, payload)
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error creating quote request for buyer {user.user_id}: {e}", exc_info=True)
            await self.session.rollback()
            raise
        logger.info(f"Quote request {db_request.id} created by buyer {user.user_id}")
        return db_request.id

    async def list_requests(self, user: UserContext) -> List[QuoteRequestListItem]:
        """
        Buyers see their own requests, sellers see every OPEN request; newest first.
        Each item carries its response count (one count query per request).
        """
        if user.is_buyer:
            requests = await self.db_repository.list_quote_requests(buyer_id=user.user_id)
        else:
            requests = await self.db_repository.list_quote_requests(status=RequestStatus.OPEN)

        items = []
        for db_request in requests:
            view = QuoteRequestView.from_table(db_request, mask_buyer=db_request.buyer_id != user.user_id)
            response_count = await self.db_repository.count_quote_responses(db_request.id)
            items.append(QuoteRequestListItem(**view.model_dump(), responseCount=response_count))
        return items

    async def get_detail(self, user: UserContext, request_id: int, sort_by: SortBy = SortBy.PRICE) -> QuoteRequestDetail:
        db_request = await self._get_request(request_id)
        responses = [
            QuoteResponseView.from_table(row)
            for row in await self.db_repository.list_quote_responses(request_id=request_id)
        ]
        is_owner = db_request.buyer_id == user.user_id
        has_submitted = user.is_seller and any(r.sellerId == user.user_id for r in responses)
        return QuoteRequestDetail(
            request=QuoteRequestView.from_table(db_request, mask_buyer=not is_owner),
            responses=rank_responses(responses, sort_by),
            sortBy=sort_by,
            isOwner=is_owner,
            hasSubmitted=has_submitted,
            canSubmitQuote=user.is_seller and db_request.status == RequestStatus.OPEN and not has_submitted,
        )

    async def select_response(
        self, user: UserContext, request_id: int, response_id: int, sort_by: SortBy = SortBy.PRICE
    ) -> QuoteRequestDetail:
        """
        Closes the request on the chosen response. Closing the request and marking the
        response selected are committed together; the close only applies to an OPEN
        request, so of two concurrent selections the later one gets RequestClosedError.
        """
        db_request = await self._get_request(request_id)
        if not user.is_buyer or db_request.buyer_id != user.user_id:
            logger.warning(f"User {user.user_id} tried to select a response on request {request_id} they do not own")
            raise PermissionDeniedError("요청자만 견적을 선택할 수 있습니다")
        if db_request.status != RequestStatus.OPEN:
            logger.warning(f"Selection attempted on closed request {request_id}")
            raise RequestClosedError(request_id)

        db_response = await self.db_repository.get_quote_response(response_id)
        if db_response is None or db_response.request_id != request_id:
            raise NotFoundError("견적을 찾을 수 없습니다")

        try:
            closed = await self.db_repository.close_quote_request(request_id)
            if closed:
                await self.db_repository.mark_quote_response_selected(response_id)
                await self.session.commit()
        except Exception as e:
            logger.error(f"Error selecting response {response_id} for request {request_id}: {e}", exc_info=True)
            await self.session.rollback()
            raise
        if not closed:
            logger.warning(f"Request {request_id} was closed by another selection")
            await self.session.rollback()
            raise RequestClosedError(request_id)
        logger.info(f"Request {request_id} closed on response {response_id} from seller {db_response.seller_id}")
        return await self.get_detail(user, request_id, sort_by)

    async def _get_request(self, request_id: int) -> QuoteRequestTable:
        db_request = await self.db_repository.get_quote_request(request_id)
        if db_request is None:
            raise NotFoundError("견적 요청을 찾을 수 없습니다")
        return db_request
