"""Domain-level validation rules for pricing guardrails and model training."""

from __future__ import annotations

import math
from dataclasses import dataclass

from backend.domain.models import FEATURE_NAMES, INTENTS, Room


PRICE_FLOOR = 20.0
MIN_ALLOWED_RATIO = 0.8
MAX_ALLOWED_RATIO = 1.25


@dataclass(frozen=True)
class GuardrailBounds:
    min_allowed: float
    max_allowed: float


@dataclass(frozen=True)
class TrainingConfig:
    learning_rate: float = 5e-7
    max_epochs: int = 5000
    loss_tolerance: float = 1e-6
    divergence_patience: int = 25
    initial_weights: tuple[float, ...] = (0.0, 0.5, 0.5, 0.2)


def round_half_up(value: float, places: int = 2) -> float:
    """Scale, add one half and floor, so halves round toward positive infinity.

    Operates on the binary value: 20.005 scales to 2000.4999... and rounds
    down to 20.0.
    """
    value = float(value)
    if not math.isfinite(value):
        return value
    scale = 10 ** places
    return math.floor(value * scale + 0.5) / scale


def compute_guardrails(current_price: float) -> GuardrailBounds:
    """Display-only bounds; the recommender never clamps to them."""
    return GuardrailBounds(
        min_allowed=max(PRICE_FLOOR, round_half_up(current_price * MIN_ALLOWED_RATIO)),
        max_allowed=round_half_up(current_price * MAX_ALLOWED_RATIO),
    )


def validate_training_config(config: TrainingConfig) -> None:
    if not math.isfinite(config.learning_rate) or config.learning_rate <= 0.0:
        raise ValueError("learning_rate must be a finite value > 0")
    if config.max_epochs <= 0:
        raise ValueError("max_epochs must be > 0")
    if config.loss_tolerance < 0.0:
        raise ValueError("loss_tolerance must be >= 0")
    if config.divergence_patience <= 0:
        raise ValueError("divergence_patience must be > 0")
    if len(config.initial_weights) != len(FEATURE_NAMES):
        raise ValueError(
            f"initial_weights must contain {len(FEATURE_NAMES)} values"
        )


def validate_intent(intent: str) -> None:
    if intent not in INTENTS:
        raise ValueError(f"intent must be one of {', '.join(INTENTS)}")


def validate_room(room: Room) -> None:
    if not room.room_id or not room.room_id.strip():
        raise ValueError("room id must be non-empty")
    if not math.isfinite(room.current_price) or room.current_price <= 0.0:
        raise ValueError(f"room {room.room_id}: current_price must be a finite value > 0")
    if not math.isfinite(room.occupancy) or not 0.0 <= room.occupancy <= 1.0:
        raise ValueError(f"room {room.room_id}: occupancy must be between 0 and 1")
    for price in room.competitor_prices:
        if not math.isfinite(price) or price <= 0.0:
            raise ValueError(
                f"room {room.room_id}: competitor prices must be finite values > 0"
            )
