import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import CategoryPrice
from .ports import AbstractRepository
from shared.models_db import Category, QuoteResponseTable, utc_now
from shared.settings import settings
from shared.logging import get_logger

logger = get_logger(__name__)


def round_half_up(value: float) -> int:
    # Half-up: 2.5 -> 3, -2.5 -> -2
    return math.floor(value + 0.5)


@dataclass
class _CategorySamples:
    recent_prices: List[int] = field(default_factory=list)
    recent_delivery_days: List[int] = field(default_factory=list)
    prior_prices: List[int] = field(default_factory=list)


def compute_price_overview(
    request_categories: Dict[int, Category],
    responses: Iterable[QuoteResponseTable],
    now: datetime,
    recent_days: int = 7,
    prior_days: int = 14,
) -> List[CategoryPrice]:
    """
    Per-category average unit price, week-over-week change and average delivery days.

    Responses created in the last `recent_days` are "recent"; those between
    `prior_days` and `recent_days` ago are "prior". Categories without a recent
    sample are left out. With no prior samples the change is 0.
    """
    recent_since = now - timedelta(days=recent_days)
    prior_since = now - timedelta(days=prior_days)
    samples = {category: _CategorySamples() for category in Category}

    for response in responses:
        category = request_categories.get(response.request_id)
        if category is None or category not in samples:
            continue
        created_at = response.created_at or now
        if created_at >= recent_since:
            samples[category].recent_prices.append(response.unit_price)
            samples[category].recent_delivery_days.append(response.delivery_days)
        elif created_at >= prior_since:
            samples[category].prior_prices.append(response.unit_price)

    overview = []
    for category in Category:
        data = samples[category]
        if not data.recent_prices:
            continue
        avg_price = round_half_up(sum(data.recent_prices) / len(data.recent_prices))
        if data.prior_prices:
            prior_avg = sum(data.prior_prices) / len(data.prior_prices)
        else:
            prior_avg = avg_price
        change_percent = round_half_up((avg_price - prior_avg) / prior_avg * 100) if prior_avg > 0 else 0
        overview.append(CategoryPrice(
            category=category,
            avgPrice=avg_price,
            changePercent=change_percent,
            avgDeliveryDays=round_half_up(sum(data.recent_delivery_days) / len(data.recent_delivery_days)),
            sampleCount=len(data.recent_prices),
        ))
    return overview


class PricingService:
    def __init__(self, db_repository: AbstractRepository, session: Optional[AsyncSession] = None):
        self.db_repository = db_repository
        self.session = session

    async def get_price_overview(self, now: Optional[datetime] = None) -> List[CategoryPrice]:
        """Scans every request and response; no caching."""
        request_categories = await self.db_repository.list_request_categories()
        responses = await self.db_repository.list_quote_responses()
        overview = compute_price_overview(
            request_categories,
            responses,
            now or utc_now(),
            recent_days=settings.PRICE_RECENT_WINDOW_DAYS,
            prior_days=settings.PRICE_PRIOR_WINDOW_DAYS,
        )
        logger.info(f"Price overview built from {len(responses)} responses across {len(overview)} categories")
        return overview
