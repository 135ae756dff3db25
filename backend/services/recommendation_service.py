"""Intent-driven price recommendation with a hard price floor."""

from __future__ import annotations

from typing import Optional, Sequence

from backend.domain.constraints import PRICE_FLOOR, round_half_up, validate_intent
from backend.domain.models import PriceRecommendation, Room
from backend.services.model_service import predict


INTENT_MULTIPLIERS: dict[str, float] = {
    "increase": 1.05,
    "decrease": 0.95,
    "review": 1.0,
}


def recommend(
    room: Room,
    intent: str,
    weights: Optional[Sequence[float]] = None,
) -> PriceRecommendation:
    """Suggest a price for one room.

    Without weights the current price is the base. The result is never below
    PRICE_FLOOR; guardrail bounds are reported elsewhere and not applied here.
    """
    validate_intent(intent)
    base = predict(weights, room) if weights is not None else float(room.current_price)
    base *= INTENT_MULTIPLIERS[intent]
    suggested = max(PRICE_FLOOR, round_half_up(base))
    delta_pct = (suggested - room.current_price) / room.current_price * 100
    return PriceRecommendation(suggested=suggested, delta_pct=delta_pct)
