"""HTTP controller layer for price suggestions, approvals, and the audit trail."""

from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_pricing_service, require_operator
from backend.repository.data_repository import RepositoryError, StaleCollectionError
from backend.services.approval_service import ApprovalValidationError
from backend.services.model_service import ModelDivergenceError
from backend.services.pricing_service import PricingValidationError, PricingWorkflowService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["pricing"])

IntentField = Literal["increase", "decrease", "review"]


class RoomResponse(BaseModel):
    id: str
    name: str
    current_price: float = Field(gt=0.0)
    occupancy: float = Field(ge=0.0, le=1.0)
    competitor_prices: list[float]


class SignalWeightResponse(BaseModel):
    value: float
    contribution: float
    normalized_weight: float


class RecommendationResponse(BaseModel):
    id: str
    name: str
    current_price: float
    competitor_avg: float = Field(ge=0.0)
    occupancy: float = Field(ge=0.0, le=1.0)
    min_allowed: float
    max_allowed: float
    suggested: float = Field(ge=20.0)
    delta_pct: float
    reason: str
    reason_summary: str
    signal_weights: dict[str, SignalWeightResponse]


class GuardrailResponse(BaseModel):
    min_allowed: float
    max_allowed: float


class AnalysisResponse(BaseModel):
    id: str
    competitor_avg: float = Field(ge=0.0)
    occupancy: float = Field(ge=0.0, le=1.0)
    model_prediction: float
    constraints: GuardrailResponse
    signal_weights: dict[str, SignalWeightResponse]


class SuggestRequest(BaseModel):
    intent: IntentField = "review"


class SuggestResponse(BaseModel):
    intent: IntentField
    suggestions: list[RecommendationResponse]
    analyses: list[AnalysisResponse]


class ApprovalRequest(BaseModel):
    id: str = Field(min_length=1)
    approved: bool
    suggested: float


class ApplyRequest(BaseModel):
    approvals: list[ApprovalRequest]
    intent: IntentField = "review"
    prompt: Optional[str] = None
    operator: Optional[str] = Field(default=None, min_length=1, pattern=r"\S")


class ApplyResponse(BaseModel):
    success: bool
    collection_version: int = Field(ge=0)
    audit_persisted: bool
    audit_error: Optional[str] = None
    audit: dict[str, Any]


@router.get(
    "/hotels",
    response_model=list[RoomResponse],
    status_code=status.HTTP_200_OK,
)
async def list_hotels(
    service: PricingWorkflowService = Depends(get_pricing_service),
    _: str | None = Depends(require_operator),
) -> list[RoomResponse]:
    try:
        return [RoomResponse(**room.to_dict()) for room in service.list_rooms()]
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room listing failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load data",
        ) from exc


@router.post(
    "/suggest",
    response_model=SuggestResponse,
    status_code=status.HTTP_200_OK,
)
async def suggest(
    payload: SuggestRequest,
    service: PricingWorkflowService = Depends(get_pricing_service),
    _: str | None = Depends(require_operator),
) -> SuggestResponse:
    """Retrain on the current collection and propose one price per room."""
    try:
        result = service.suggest(intent=payload.intent)
        return SuggestResponse(**result.to_dict())
    except PricingValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ModelDivergenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected suggestion failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute suggestions",
        ) from exc


@router.post(
    "/apply",
    response_model=ApplyResponse,
    status_code=status.HTTP_200_OK,
)
async def apply(
    payload: ApplyRequest,
    service: PricingWorkflowService = Depends(get_pricing_service),
    session_operator: str | None = Depends(require_operator),
) -> ApplyResponse:
    """Persist operator-approved prices and append the audit entry."""
    try:
        outcome = service.apply(
            approvals=[item.model_dump() for item in payload.approvals],
            operator=session_operator if session_operator is not None else payload.operator,
            prompt=payload.prompt,
            intent=payload.intent,
        )
        return ApplyResponse(**outcome.to_dict())
    except (ApprovalValidationError, PricingValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ModelDivergenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except StaleCollectionError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except RepositoryError as exc:
        logger.error("Apply failed during persistence | error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to apply changes",
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected apply failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to apply changes",
        ) from exc


@router.get(
    "/audit",
    response_model=list[dict[str, Any]],
    status_code=status.HTTP_200_OK,
)
async def list_audit(
    limit: Optional[int] = Query(default=None, gt=0, le=500),
    service: PricingWorkflowService = Depends(get_pricing_service),
    _: str | None = Depends(require_operator),
) -> list[dict[str, Any]]:
    try:
        return service.list_audit_entries(limit=limit)
    except RepositoryError as exc:
        logger.error("Audit listing failed | error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load audit log",
        ) from exc
