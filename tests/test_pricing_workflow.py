from __future__ import annotations

from dataclasses import replace

import pytest

from backend.domain.models import Room
from backend.repository.data_repository import (
    SYNTHETIC_ROOMS,
    DataRepository,
    RepositoryError,
    StaleCollectionError,
)
from backend.services.approval_service import ApprovalValidationError
from backend.services.model_service import ModelDivergenceError
from backend.services.pricing_service import (
    PricingValidationError,
    PricingWorkflowService,
    suggest_all,
)
from backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        admin_token=None,
        default_operator="test-operator",
    )


def _build_service(tmp_path, filename: str) -> tuple[PricingWorkflowService, DataRepository]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_synthetic_rooms()
    return PricingWorkflowService(repository=repository, settings=settings), repository


def test_seed_is_idempotent(tmp_path):
    _, repository = _build_service(tmp_path, "seed.db")
    assert repository.seed_synthetic_rooms() == 0
    assert [room.room_id for room in repository.load_rooms()] == [
        room.room_id for room in SYNTHETIC_ROOMS
    ]
    assert repository.get_collection_version() == 1


def test_repository_round_trips_competitor_prices_in_order(tmp_path):
    _, repository = _build_service(tmp_path, "round_trip.db")
    rooms = repository.load_rooms()
    assert rooms == list(SYNTHETIC_ROOMS)
    assert rooms[-1].competitor_prices == ()


def test_suggest_returns_one_recommendation_per_room(tmp_path):
    service, _ = _build_service(tmp_path, "suggest.db")
    result = service.suggest(intent="increase")

    assert result.intent == "increase"
    assert len(result.suggestions) == len(SYNTHETIC_ROOMS)
    assert len(result.analyses) == len(SYNTHETIC_ROOMS)
    for suggestion, analysis in zip(result.suggestions, result.analyses):
        assert suggestion.room_id == analysis.room_id
        assert suggestion.suggested >= 20.0
        assert suggestion.min_allowed <= suggestion.max_allowed
        assert suggestion.reason.startswith("Model $")
    assert result.suggestions[-1].competitor_avg == 0.0


def test_suggest_rejects_unknown_intent(tmp_path):
    service, _ = _build_service(tmp_path, "bad_intent.db")
    with pytest.raises(PricingValidationError):
        service.suggest(intent="maximize")


def test_suggest_all_propagates_divergence():
    rooms = [Room("LUX", "Penthouse", 5000.0, 0.6, (5000.0,))]
    with pytest.raises(ModelDivergenceError):
        suggest_all(rooms, "review")


def test_apply_persists_rooms_and_appends_audit(tmp_path):
    service, repository = _build_service(tmp_path, "apply.db")
    version_before = repository.get_collection_version()

    outcome = service.apply(
        approvals=[
            {"id": "STD", "approved": True, "suggested": 135.5},
            {"id": "DLX", "approved": False, "suggested": 185.0},
        ],
        prompt="bump the standard rooms",
        intent="increase",
    )

    assert outcome.audit_persisted is True
    assert outcome.audit_error is None
    assert outcome.collection_version == version_before + 1
    assert outcome.audit.operator == "test-operator"

    rooms = {room.room_id: room for room in repository.load_rooms()}
    assert rooms["STD"].current_price == 135.5
    assert rooms["DLX"].current_price == 179.0

    entries = service.list_audit_entries()
    assert len(entries) == 1
    assert entries[0]["prompt"] == "bump the standard rooms"
    assert [change["id"] for change in entries[0]["applied"]] == ["STD"]
    assert entries[0]["applied"][0]["final"] == 135.5


def test_apply_with_no_approved_rooms_still_audits(tmp_path):
    service, repository = _build_service(tmp_path, "reject.db")
    before = repository.load_rooms()

    outcome = service.apply(
        approvals=[{"id": "STD", "approved": False, "suggested": 140.0}],
        operator="alex",
    )

    assert repository.load_rooms() == before
    assert outcome.audit.applied == ()
    assert repository.count_audit_entries() == 1


def test_invalid_approvals_leave_state_untouched(tmp_path):
    service, repository = _build_service(tmp_path, "invalid.db")
    rooms_before = repository.load_rooms()
    version_before = repository.get_collection_version()

    with pytest.raises(ApprovalValidationError):
        service.apply(approvals={"id": "STD", "approved": True, "suggested": 140.0})

    assert repository.load_rooms() == rooms_before
    assert repository.get_collection_version() == version_before
    assert repository.count_audit_entries() == 0


def test_invalid_intent_leaves_state_untouched(tmp_path):
    service, repository = _build_service(tmp_path, "invalid_intent.db")
    with pytest.raises(PricingValidationError):
        service.apply(
            approvals=[{"id": "STD", "approved": True, "suggested": 140.0}],
            intent="maximize",
        )
    assert repository.count_audit_entries() == 0


def test_audit_failure_keeps_room_update(tmp_path, monkeypatch):
    service, repository = _build_service(tmp_path, "audit_failure.db")

    def _fail(entry):
        raise RepositoryError("disk full")

    monkeypatch.setattr(repository, "append_audit_entry", _fail)

    outcome = service.apply(
        approvals=[{"id": "ECO", "approved": True, "suggested": 84.0}],
    )

    assert outcome.audit_persisted is False
    assert outcome.audit_error == "disk full"
    assert {room.room_id: room for room in repository.load_rooms()}["ECO"].current_price == 84.0
    assert repository.count_audit_entries() == 0


def test_persistence_failure_propagates(tmp_path, monkeypatch):
    service, repository = _build_service(tmp_path, "persist_failure.db")

    def _fail(rooms, expected_version=None):
        raise RepositoryError("database is locked")

    monkeypatch.setattr(repository, "replace_rooms", _fail)

    with pytest.raises(RepositoryError):
        service.apply(approvals=[{"id": "STD", "approved": True, "suggested": 140.0}])
    assert repository.count_audit_entries() == 0


def test_stale_version_is_rejected(tmp_path):
    _, repository = _build_service(tmp_path, "stale.db")
    snapshot = repository.load_snapshot()
    repository.replace_rooms(snapshot.rooms, expected_version=snapshot.version)

    with pytest.raises(StaleCollectionError):
        repository.replace_rooms(snapshot.rooms, expected_version=snapshot.version)
    assert repository.get_collection_version() == snapshot.version + 1


def test_replace_rooms_rejects_invalid_room(tmp_path):
    _, repository = _build_service(tmp_path, "invalid_room.db")
    with pytest.raises(RepositoryError):
        repository.replace_rooms([Room("X", "Broken", -1.0, 0.5, ())])


def test_audit_listing_is_newest_first_and_limited(tmp_path):
    service, _ = _build_service(tmp_path, "audit_order.db")
    for operator in ("first", "second", "third"):
        service.apply(approvals=[], operator=operator)

    entries = service.list_audit_entries(limit=2)
    assert [entry["operator"] for entry in entries] == ["third", "second"]

    with pytest.raises(PricingValidationError):
        service.list_audit_entries(limit=0)


def test_audit_count_wraps_database_errors(tmp_path):
    repository = DataRepository(_build_test_settings(tmp_path, "uninitialized.db"))
    with pytest.raises(RepositoryError):
        repository.count_audit_entries()
