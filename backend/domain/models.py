"""Domain models for price recommendation, explanation, and approval audit."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal


Intent = Literal["increase", "decrease", "review"]

INTENTS: tuple[str, ...] = ("increase", "decrease", "review")

FEATURE_NAMES: tuple[str, ...] = (
    "intercept",
    "current_price",
    "occupancy",
    "competitor_avg",
)

# Positionally aligned with FEATURE_NAMES.
ModelWeights = tuple[float, float, float, float]


@dataclass(frozen=True)
class Room:
    room_id: str
    name: str
    current_price: float
    occupancy: float
    competitor_prices: tuple[float, ...] = ()

    def with_price(self, price: float) -> Room:
        return replace(self, current_price=float(price))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.room_id,
            "name": self.name,
            "current_price": self.current_price,
            "occupancy": self.occupancy,
            "competitor_prices": list(self.competitor_prices),
        }


@dataclass(frozen=True)
class FeatureVector:
    intercept: float
    current_price: float
    occupancy: float
    competitor_avg: float

    def values(self) -> tuple[float, float, float, float]:
        return (self.intercept, self.current_price, self.occupancy, self.competitor_avg)

    def to_dict(self) -> dict[str, float]:
        return dict(zip(FEATURE_NAMES, self.values()))


@dataclass(frozen=True)
class SignalWeight:
    value: float
    contribution: float
    normalized_weight: float

    def to_dict(self) -> dict[str, float]:
        return {
            "value": self.value,
            "contribution": self.contribution,
            "normalized_weight": self.normalized_weight,
        }


@dataclass(frozen=True)
class PriceRecommendation:
    suggested: float
    delta_pct: float

    def to_dict(self) -> dict[str, float]:
        return {"suggested": self.suggested, "delta_pct": self.delta_pct}


@dataclass(frozen=True)
class Explanation:
    """Per-signal decomposition of one model prediction."""

    signals: FeatureVector
    signal_weights: dict[str, SignalWeight]
    model_prediction: float
    total_abs_contribution: float
    recommendation: PriceRecommendation
    reason: str
    reason_summary: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "signals": self.signals.to_dict(),
            "signal_weights": {
                name: weight.to_dict() for name, weight in self.signal_weights.items()
            },
            "model_prediction": self.model_prediction,
            "total_abs_contribution": self.total_abs_contribution,
            "recommendation": self.recommendation.to_dict(),
            "reason": self.reason,
            "reason_summary": self.reason_summary,
        }


@dataclass(frozen=True)
class Recommendation:
    room_id: str
    name: str
    current_price: float
    competitor_avg: float
    occupancy: float
    min_allowed: float
    max_allowed: float
    suggested: float
    delta_pct: float
    reason: str
    reason_summary: str
    signal_weights: dict[str, SignalWeight]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.room_id,
            "name": self.name,
            "current_price": self.current_price,
            "competitor_avg": self.competitor_avg,
            "occupancy": self.occupancy,
            "min_allowed": self.min_allowed,
            "max_allowed": self.max_allowed,
            "suggested": self.suggested,
            "delta_pct": self.delta_pct,
            "reason": self.reason,
            "reason_summary": self.reason_summary,
            "signal_weights": {
                name: weight.to_dict() for name, weight in self.signal_weights.items()
            },
        }


@dataclass(frozen=True)
class RoomAnalysis:
    room_id: str
    competitor_avg: float
    occupancy: float
    model_prediction: float
    min_allowed: float
    max_allowed: float
    signal_weights: dict[str, SignalWeight]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.room_id,
            "competitor_avg": self.competitor_avg,
            "occupancy": self.occupancy,
            "model_prediction": self.model_prediction,
            "constraints": {
                "min_allowed": self.min_allowed,
                "max_allowed": self.max_allowed,
            },
            "signal_weights": {
                name: weight.to_dict() for name, weight in self.signal_weights.items()
            },
        }


@dataclass(frozen=True)
class SuggestionSet:
    intent: str
    suggestions: list[Recommendation]
    analyses: list[RoomAnalysis]
    weights: ModelWeights

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "suggestions": [item.to_dict() for item in self.suggestions],
            "analyses": [item.to_dict() for item in self.analyses],
        }


@dataclass(frozen=True)
class Approval:
    room_id: str
    approved: bool
    suggested: float

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.room_id, "approved": self.approved, "suggested": self.suggested}


@dataclass(frozen=True)
class ApplyContext:
    operator: str
    prompt: str | None = None
    intent: str = "review"


@dataclass(frozen=True)
class AppliedChange:
    room_id: str
    name: str
    proposed: float
    approved: bool
    final: float
    explanation: Explanation
    reason_summary: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.room_id,
            "name": self.name,
            "proposed": self.proposed,
            "approved": self.approved,
            "final": self.final,
            "explanation": self.explanation.to_dict(),
            "reason_summary": self.reason_summary,
        }


@dataclass(frozen=True)
class AuditEntry:
    """Append-only record of one apply call."""

    recorded_at: str
    operator: str
    prompt: str | None
    intent: str
    approvals: tuple[Approval, ...] = field(default_factory=tuple)
    applied: tuple[AppliedChange, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.recorded_at,
            "operator": self.operator,
            "prompt": self.prompt,
            "intent": self.intent,
            "approvals": [approval.to_dict() for approval in self.approvals],
            "applied": [change.to_dict() for change in self.applied],
        }


@dataclass(frozen=True)
class ApprovalResult:
    updated_rooms: list[Room]
    audit: AuditEntry


@dataclass(frozen=True)
class ApplyOutcome:
    updated_rooms: list[Room]
    audit: AuditEntry
    collection_version: int
    audit_persisted: bool
    audit_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "collection_version": self.collection_version,
            "audit_persisted": self.audit_persisted,
            "audit_error": self.audit_error,
            "audit": self.audit.to_dict(),
        }
