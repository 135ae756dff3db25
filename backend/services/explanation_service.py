"""Per-signal decomposition of price model predictions."""

from __future__ import annotations

from typing import Sequence

from backend.domain.constraints import round_half_up
from backend.domain.models import FEATURE_NAMES, Explanation, Room, SignalWeight
from backend.services.model_service import extract_features, predict
from backend.services.recommendation_service import recommend


TOP_SIGNAL_COUNT = 2


def _format_signal(name: str, weight: SignalWeight) -> str:
    percentage = int(round_half_up(weight.normalized_weight * 100, places=0))
    return f"{name}:{percentage}%"


def explain(weights: Sequence[float], room: Room, intent: str) -> Explanation:
    """Break a prediction into contribution = weight x feature per signal.

    Normalized weights divide by the sum of absolute contributions and are all
    zero when that sum is zero. The headline lists the two largest absolute
    contributions; ties keep FEATURE_NAMES order.
    """

    features = extract_features(room)
    values = features.values()
    contributions = [float(weight) * value for weight, value in zip(weights, values)]
    total_abs = sum(abs(contribution) for contribution in contributions)

    signal_weights: dict[str, SignalWeight] = {}
    for name, value, contribution in zip(FEATURE_NAMES, values, contributions):
        signal_weights[name] = SignalWeight(
            value=value,
            contribution=contribution,
            normalized_weight=0.0 if total_abs == 0 else contribution / total_abs,
        )

    ranked = sorted(
        FEATURE_NAMES,
        key=lambda name: abs(signal_weights[name].contribution),
        reverse=True,
    )
    reason_summary = ", ".join(
        _format_signal(name, signal_weights[name]) for name in ranked[:TOP_SIGNAL_COUNT]
    )
    model_prediction = predict(weights, room)

    return Explanation(
        signals=features,
        signal_weights=signal_weights,
        model_prediction=model_prediction,
        total_abs_contribution=total_abs,
        recommendation=recommend(room, intent, weights),
        reason=f"Model ${model_prediction:.2f} — top signals: {reason_summary}",
        reason_summary=reason_summary,
    )
