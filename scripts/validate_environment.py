#!/usr/bin/env python3
"""Validate local pricing copilot environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.repository.data_repository import SYNTHETIC_ROOMS, DataRepository
from backend.services.model_service import fit_model, training_config_from_settings
from backend.services.pricing_service import PricingWorkflowService
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="pricing-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_names = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "numpy",
        "pandas",
        "sklearn",
        "httpx",
        "pytest",
    ]
    import_errors: list[str] = []
    for module_name in package_names:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "pricing_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Synthetic room seeding
        try:
            seeded = repository.seed_synthetic_rooms()
            if seeded != len(SYNTHETIC_ROOMS):
                raise RuntimeError(f"expected {len(SYNTHETIC_ROOMS)} rooms, got {seeded}")
            ok, line = _print_result("Synthetic rooms", True, f": {seeded} rooms")
        except Exception as exc:
            ok, line = _print_result("Synthetic rooms", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Model training
        try:
            training = fit_model(
                repository.load_rooms(),
                training_config_from_settings(validation_settings),
            )
            ok, line = _print_result(
                "Model training",
                True,
                f": epochs={training.epochs_run} rmse={training.training_rmse:.4f}",
            )
        except Exception as exc:
            ok, line = _print_result("Model training", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6: Suggest and apply round trip
        service = PricingWorkflowService(repository=repository, settings=validation_settings)
        try:
            suggestions = service.suggest(intent="increase").suggestions
            first = suggestions[0]
            outcome = service.apply(
                approvals=[{"id": first.room_id, "approved": True, "suggested": first.suggested}],
                operator="environment-check",
                intent="increase",
            )
            if not outcome.audit_persisted or repository.count_audit_entries() != 1:
                raise RuntimeError("audit entry was not persisted")
            ok, line = _print_result(
                "Suggest/apply round trip",
                True,
                f": {first.room_id} -> {first.suggested:.2f}",
            )
        except Exception as exc:
            ok, line = _print_result("Suggest/apply round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Pricing Copilot Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
