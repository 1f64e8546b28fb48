import asyncio
import pytest
import pytest_asyncio
from typing import AsyncGenerator, List
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlmodel import SQLModel, select

from catchpac.adapters.db_repository import SQLModelRepository
from catchpac.models import CreateQuoteRequest, SubmitQuoteResponse
from catchpac.service.errors import RequestClosedError
from catchpac.service.request_service import QuoteRequestService
from catchpac.tests.factories import make_user_context
from shared.db import build_engine
from shared.models_db import Category, Maker, QuoteRequestTable, QuoteResponseTable, RequestStatus, UserRole


class _Gate:
    """Releases every caller once `parties` of them have arrived."""

    def __init__(self, parties: int):
        self.parties = parties
        self.arrived = 0
        self.opened = asyncio.Event()

    async def arrive(self):
        self.arrived += 1
        if self.arrived == self.parties:
            self.opened.set()
        await asyncio.wait_for(self.opened.wait(), timeout=5)


class _GatedRepository(SQLModelRepository):
    """Holds the close until both selections have read the request as OPEN."""

    def __init__(self, session: AsyncSession, gate: _Gate):
        super().__init__(session)
        self.gate = gate

    async def close_quote_request(self, request_id: int) -> bool:
        await self.gate.arrive()
        return await super().close_quote_request(request_id)


@pytest_asyncio.fixture
async def file_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    # Separate connections per session, so each selection runs its own transaction
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'catchpac.db'}")
    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


async def _seed(engine: AsyncEngine) -> tuple:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        repository = SQLModelRepository(session)
        await repository.add_user("buyer-1", "buyer@example.com", "김구매", "대한정밀", UserRole.BUYER)
        await repository.add_user("seller-1", "seller1@example.com", "이판매", "한국서보상사", UserRole.SELLER)
        await repository.add_user("seller-2", "seller2@example.com", "박판매", "동양FA", UserRole.SELLER)
        db_request = await repository.add_quote_request("buyer-1", "대한정밀", CreateQuoteRequest(
            category=Category.SERVO_MOTOR,
            maker=Maker.MITSUBISHI,
            partNumber="HG-KR43B",
            quantity=4,
            desiredDelivery="2주 이내",
        ))
        first = await repository.add_quote_response(
            db_request, "seller-1", "한국서보상사", SubmitQuoteResponse(unitPrice=450000, deliveryDays=14)
        )
        second = await repository.add_quote_response(
            db_request, "seller-2", "동양FA", SubmitQuoteResponse(unitPrice=430000, deliveryDays=7)
        )
        await session.commit()
        return db_request.id, first.id, second.id


async def _select(engine: AsyncEngine, gate: _Gate, request_id: int, response_id: int):
    async with AsyncSession(engine, expire_on_commit=False, autoflush=False) as session:
        service = QuoteRequestService(db_repository=_GatedRepository(session, gate), session=session)
        return await service.select_response(make_user_context("buyer-1", UserRole.BUYER), request_id, response_id)


async def _stored_state(engine: AsyncEngine, request_id: int) -> tuple:
    async with AsyncSession(engine) as session:
        db_request = await session.get(QuoteRequestTable, request_id)
        result = await session.execute(select(QuoteResponseTable).where(QuoteResponseTable.request_id == request_id))
        responses: List[QuoteResponseTable] = list(result.scalars().all())
        return db_request.status, [r.id for r in responses if r.is_selected]


@pytest.mark.asyncio
async def test_concurrent_selections_close_request_once(file_engine: AsyncEngine):
    request_id, first_id, second_id = await _seed(file_engine)
    gate = _Gate(parties=2)

    outcomes = await asyncio.gather(
        _select(file_engine, gate, request_id, first_id),
        _select(file_engine, gate, request_id, second_id),
        return_exceptions=True,
    )

    winners = [o for o in outcomes if not isinstance(o, BaseException)]
    losers = [o for o in outcomes if isinstance(o, BaseException)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], RequestClosedError)
    assert losers[0].status_code == 409

    status, selected_ids = await _stored_state(file_engine, request_id)
    assert status == RequestStatus.CLOSED
    assert len(selected_ids) == 1
    assert [r.id for r in winners[0].responses if r.isSelected] == selected_ids


@pytest.mark.asyncio
async def test_selection_after_close_is_rejected(file_engine: AsyncEngine):
    request_id, first_id, second_id = await _seed(file_engine)

    await _select(file_engine, _Gate(parties=1), request_id, first_id)
    with pytest.raises(RequestClosedError):
        await _select(file_engine, _Gate(parties=1), request_id, second_id)

    assert await _stored_state(file_engine, request_id) == (RequestStatus.CLOSED, [first_id])
