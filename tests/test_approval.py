from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from backend.domain.models import ApplyContext, Approval, Room
from backend.services.approval_service import (
    ApprovalValidationError,
    apply_approvals,
    parse_approvals,
)


def _rooms() -> list[Room]:
    return [
        Room("A", "Room A", 100.0, 0.6, (110.0, 90.0)),
        Room("B", "Room B", 150.0, 0.7, (160.0,)),
    ]


def _context() -> ApplyContext:
    return ApplyContext(operator="alex", prompt="raise weekend rates", intent="increase")


def test_parse_accepts_mappings_and_approval_objects():
    parsed = parse_approvals(
        [
            {"id": "A", "approved": True, "suggested": 105},
            Approval(room_id="B", approved=False, suggested=140.0),
        ]
    )
    assert parsed == [
        Approval(room_id="A", approved=True, suggested=105.0),
        Approval(room_id="B", approved=False, suggested=140.0),
    ]


def test_parse_accepts_room_id_key():
    parsed = parse_approvals([{"room_id": "A", "approved": False, "suggested": 0}])
    assert parsed[0].room_id == "A"


def test_parse_accepts_empty_list():
    assert parse_approvals([]) == []


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "A",
        {"id": "A", "approved": True, "suggested": 105},
        ["A"],
        [{"approved": True, "suggested": 105}],
        [{"id": "", "approved": True, "suggested": 105}],
        [{"id": "A", "approved": "yes", "suggested": 105}],
        [{"id": "A", "approved": True, "suggested": "105"}],
        [{"id": "A", "approved": True, "suggested": True}],
        [{"id": "A", "approved": True, "suggested": math.nan}],
        [{"id": "A", "approved": True, "suggested": 0}],
        [{"id": "A", "approved": True, "suggested": -10}],
    ],
)
def test_parse_rejects_malformed_payloads(payload):
    with pytest.raises(ApprovalValidationError):
        parse_approvals(payload)


def test_approved_room_takes_operator_price_and_is_audited():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    result = apply_approvals(
        _rooms(),
        [{"id": "A", "approved": True, "suggested": 105}],
        _context(),
        now=now,
    )

    room_a, room_b = result.updated_rooms
    assert room_a.current_price == 105.0
    assert room_b == _rooms()[1]

    audit = result.audit
    assert audit.recorded_at == now.isoformat()
    assert audit.operator == "alex"
    assert audit.prompt == "raise weekend rates"
    assert audit.intent == "increase"
    assert len(audit.applied) == 1
    change = audit.applied[0]
    assert change.room_id == "A"
    assert change.proposed == 105.0
    assert change.final == 105.0
    assert change.approved is True
    assert change.reason_summary == change.explanation.reason_summary
    # explanation is computed on the room as it was before the change
    assert change.explanation.signals.current_price == 100.0


def test_rejected_room_is_unchanged_but_still_audited():
    rooms = _rooms()
    result = apply_approvals(
        rooms,
        [{"id": "A", "approved": False, "suggested": 105}],
        _context(),
    )

    assert result.updated_rooms == rooms
    assert result.audit.applied == ()
    assert result.audit.approvals == (Approval(room_id="A", approved=False, suggested=105.0),)


def test_repeated_rejection_never_mutates_price():
    rooms = _rooms()
    approvals = [{"id": "A", "approved": False, "suggested": 105}]
    first = apply_approvals(rooms, approvals, _context())
    second = apply_approvals(first.updated_rooms, approvals, _context())
    assert second.updated_rooms[0].current_price == 100.0


def test_first_approval_for_a_room_wins():
    result = apply_approvals(
        _rooms(),
        [
            {"id": "A", "approved": True, "suggested": 104},
            {"id": "A", "approved": True, "suggested": 120},
        ],
        _context(),
    )
    assert result.updated_rooms[0].current_price == 104.0
    assert len(result.audit.applied) == 1
    assert len(result.audit.approvals) == 2


def test_unknown_room_ids_are_ignored():
    rooms = _rooms()
    result = apply_approvals(
        rooms,
        [{"id": "ZZZ", "approved": True, "suggested": 99}],
        _context(),
    )
    assert result.updated_rooms == rooms
    assert result.audit.applied == ()


def test_invalid_payload_applies_nothing():
    with pytest.raises(ApprovalValidationError):
        apply_approvals(_rooms(), {"id": "A"}, _context())


def test_audit_entry_serializes_with_time_key():
    payload = apply_approvals(
        _rooms(),
        [{"id": "B", "approved": True, "suggested": 155.5}],
        _context(),
    ).audit.to_dict()

    assert set(payload) == {"time", "operator", "prompt", "intent", "approvals", "applied"}
    assert payload["applied"][0]["id"] == "B"
    assert payload["applied"][0]["final"] == 155.5
    assert payload["approvals"] == [{"id": "B", "approved": True, "suggested": 155.5}]
