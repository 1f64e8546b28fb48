from typing import Iterable, List

from ..models import QuoteResponseView, RankBadge, RankedQuoteResponse, SortBy

_SORT_KEYS = {
    SortBy.PRICE: (lambda response: response.unitPrice, RankBadge.LOWEST_PRICE),
    SortBy.DELIVERY: (lambda response: response.deliveryDays, RankBadge.FASTEST_DELIVERY),
}


def rank_responses(responses: Iterable[QuoteResponseView], sort_by: SortBy = SortBy.PRICE) -> List[RankedQuoteResponse]:
    """
    Sorts responses ascending by unit price or delivery days and badges the first one.

    The sort is stable, so ties keep the incoming (newest first) order.
    """
    key, badge = _SORT_KEYS[SortBy(sort_by)]
    ranked = [
        RankedQuoteResponse(**response.model_dump())
        for response in sorted(responses, key=key)
    ]
    if ranked:
        ranked[0].badge = badge
    return ranked
