"""Approval parsing and the pure apply step that produces the audit record."""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from backend.domain.constraints import TrainingConfig
from backend.domain.models import (
    AppliedChange,
    ApplyContext,
    Approval,
    ApprovalResult,
    AuditEntry,
    Room,
)
from backend.services.explanation_service import explain
from backend.services.model_service import train_model
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class ApprovalValidationError(ValueError):
    """Raised when an approvals payload is malformed."""


def _parse_price(value: Any, room_id: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ApprovalValidationError(f"approval for room {room_id}: suggested must be numeric")
    price = float(value)
    if not math.isfinite(price):
        raise ApprovalValidationError(f"approval for room {room_id}: suggested must be finite")
    return price


def _parse_approval(item: Any, index: int) -> Approval:
    if isinstance(item, Approval):
        room_id, approved, suggested = item.room_id, item.approved, item.suggested
    elif isinstance(item, Mapping):
        room_id = item.get("id", item.get("room_id"))
        approved = item.get("approved")
        suggested = item.get("suggested")
    else:
        raise ApprovalValidationError(f"approvals[{index}] must be an object")

    if not isinstance(room_id, str) or not room_id.strip():
        raise ApprovalValidationError(f"approvals[{index}]: id must be a non-empty string")
    if not isinstance(approved, bool):
        raise ApprovalValidationError(f"approval for room {room_id}: approved must be a boolean")
    price = _parse_price(suggested, room_id)
    if approved and price <= 0.0:
        raise ApprovalValidationError(f"approval for room {room_id}: suggested must be > 0")
    return Approval(room_id=room_id, approved=approved, suggested=price)


def parse_approvals(payload: Any) -> list[Approval]:
    """Validate the whole payload up front so nothing is applied on error."""
    if not isinstance(payload, (list, tuple)):
        raise ApprovalValidationError("approvals must be a list")
    return [_parse_approval(item, index) for index, item in enumerate(payload)]


def apply_approvals(
    rooms: Sequence[Room],
    approvals: Any,
    context: ApplyContext,
    *,
    config: Optional[TrainingConfig] = None,
    now: Optional[datetime] = None,
) -> ApprovalResult:
    """Apply approved prices and build the audit entry for this call.

    Weights are retrained from ``rooms``; whatever model produced the original
    proposal is not consulted. The operator-supplied price is what lands in
    both the room and the applied record.
    """

    parsed = parse_approvals(approvals)
    approval_by_room: dict[str, Approval] = {}
    for approval in parsed:
        approval_by_room.setdefault(approval.room_id, approval)

    weights = train_model(rooms, config)

    updated_rooms: list[Room] = []
    applied: list[AppliedChange] = []
    for room in rooms:
        approval = approval_by_room.get(room.room_id)
        if approval is None or not approval.approved:
            updated_rooms.append(room)
            continue

        explanation = explain(weights, room, context.intent)
        applied.append(
            AppliedChange(
                room_id=room.room_id,
                name=room.name,
                proposed=approval.suggested,
                approved=True,
                final=approval.suggested,
                explanation=explanation,
                reason_summary=explanation.reason_summary,
            )
        )
        updated_rooms.append(room.with_price(approval.suggested))

    recorded_at = (now or datetime.now(timezone.utc)).isoformat()
    audit = AuditEntry(
        recorded_at=recorded_at,
        operator=context.operator,
        prompt=context.prompt,
        intent=context.intent,
        approvals=tuple(parsed),
        applied=tuple(applied),
    )
    logger.info(
        "Approvals evaluated | operator=%s | intent=%s | approvals=%s | applied=%s",
        context.operator,
        context.intent,
        len(parsed),
        len(applied),
    )
    return ApprovalResult(updated_rooms=updated_rooms, audit=audit)
