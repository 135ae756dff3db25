"""Pricing workflow orchestration: suggest -> approve -> apply -> audit."""

from __future__ import annotations

from threading import RLock
from typing import Any, Optional, Sequence

from backend.domain.constraints import (
    TrainingConfig,
    compute_guardrails,
    validate_intent,
    validate_room,
)
from backend.domain.models import (
    ApplyContext,
    ApplyOutcome,
    Recommendation,
    Room,
    RoomAnalysis,
    SuggestionSet,
)
from backend.repository.data_repository import DataRepository, RepositoryError
from backend.services.approval_service import apply_approvals, parse_approvals
from backend.services.explanation_service import explain
from backend.services.model_service import (
    competitor_average,
    train_model,
    training_config_from_settings,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class PricingValidationError(ValueError):
    """Raised when pricing workflow inputs are invalid."""


def suggest_all(
    rooms: Sequence[Room],
    intent: str,
    config: Optional[TrainingConfig] = None,
) -> SuggestionSet:
    """Train fresh weights and build one recommendation and analysis per room."""
    try:
        validate_intent(intent)
    except ValueError as exc:
        raise PricingValidationError(str(exc)) from exc

    weights = train_model(rooms, config)
    suggestions: list[Recommendation] = []
    analyses: list[RoomAnalysis] = []
    for room in rooms:
        explanation = explain(weights, room, intent)
        bounds = compute_guardrails(room.current_price)
        competitor_avg = competitor_average(room.competitor_prices)
        suggestions.append(
            Recommendation(
                room_id=room.room_id,
                name=room.name,
                current_price=room.current_price,
                competitor_avg=competitor_avg,
                occupancy=room.occupancy,
                min_allowed=bounds.min_allowed,
                max_allowed=bounds.max_allowed,
                suggested=explanation.recommendation.suggested,
                delta_pct=explanation.recommendation.delta_pct,
                reason=explanation.reason,
                reason_summary=explanation.reason_summary,
                signal_weights=explanation.signal_weights,
            )
        )
        analyses.append(
            RoomAnalysis(
                room_id=room.room_id,
                competitor_avg=competitor_avg,
                occupancy=room.occupancy,
                model_prediction=explanation.model_prediction,
                min_allowed=bounds.min_allowed,
                max_allowed=bounds.max_allowed,
                signal_weights=explanation.signal_weights,
            )
        )
    return SuggestionSet(
        intent=intent,
        suggestions=suggestions,
        analyses=analyses,
        weights=weights,
    )


class PricingWorkflowService:
    """Coordinates room loading, suggestion, and gated apply with audit."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._write_lock = RLock()

    def _training_config(self) -> TrainingConfig:
        return training_config_from_settings(self._settings)

    def _load_valid_rooms(self) -> list[Room]:
        rooms = self._repository.load_rooms()
        for room in rooms:
            try:
                validate_room(room)
            except ValueError as exc:
                raise PricingValidationError(str(exc)) from exc
        return rooms

    def list_rooms(self) -> list[Room]:
        return self._repository.load_rooms()

    def suggest(self, *, intent: str) -> SuggestionSet:
        rooms = self._load_valid_rooms()
        result = suggest_all(rooms, intent, self._training_config())
        logger.info(
            "Suggestions generated | intent=%s | rooms=%s",
            intent,
            len(result.suggestions),
        )
        return result

    def apply(
        self,
        *,
        approvals: Any,
        operator: Optional[str] = None,
        prompt: Optional[str] = None,
        intent: str = "review",
    ) -> ApplyOutcome:
        """Apply approved prices and append one audit entry.

        The load-mutate-persist sequence runs under a single-writer lock and
        persists against the version it loaded, so a concurrent writer causes
        StaleCollectionError instead of a lost update. Audit append failures
        are reported on the outcome and never undo the room update.
        """
        parsed = parse_approvals(approvals)
        try:
            validate_intent(intent)
        except ValueError as exc:
            raise PricingValidationError(str(exc)) from exc
        context = ApplyContext(
            operator=(operator or "").strip() or self._settings.default_operator,
            prompt=prompt,
            intent=intent,
        )

        with self._write_lock:
            snapshot = self._repository.load_snapshot()
            result = apply_approvals(
                snapshot.rooms,
                parsed,
                context,
                config=self._training_config(),
            )
            version = self._repository.replace_rooms(
                result.updated_rooms,
                expected_version=snapshot.version,
            )

        audit_error: str | None = None
        try:
            self._repository.append_audit_entry(result.audit)
        except RepositoryError as exc:
            audit_error = str(exc)
            logger.warning(
                "Audit append failed; room update kept | operator=%s | error=%s",
                context.operator,
                audit_error,
            )

        logger.info(
            "Approvals applied | operator=%s | applied=%s | version=%s | audit_persisted=%s",
            context.operator,
            len(result.audit.applied),
            version,
            audit_error is None,
        )
        return ApplyOutcome(
            updated_rooms=result.updated_rooms,
            audit=result.audit,
            collection_version=version,
            audit_persisted=audit_error is None,
            audit_error=audit_error,
        )

    def list_audit_entries(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        resolved_limit = limit if limit is not None else self._settings.audit_list_limit
        if resolved_limit <= 0:
            raise PricingValidationError("limit must be > 0")
        return self._repository.list_audit_entries(limit=resolved_limit)
