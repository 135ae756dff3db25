"""Centralized runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_float(value: str | None, default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Application settings shared by repository, services, and controllers."""

    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    admin_token: str | None
    default_operator: str
    model_learning_rate: float
    model_max_epochs: int
    model_loss_tolerance: float
    model_divergence_patience: int
    model_initial_weights: tuple[float, float, float, float]
    audit_list_limit: int
    seed_synthetic_rooms: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment with safe defaults for local development."""

    admin_token = os.getenv("ADMIN_TOKEN")
    return Settings(
        app_name=os.getenv("APP_NAME", "Hotel Pricing Copilot"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(os.getenv("DATABASE_PATH", "data/pricing.db")),
        admin_token=admin_token.strip() if admin_token and admin_token.strip() else None,
        default_operator=os.getenv("DEFAULT_OPERATOR", "local-operator"),
        model_learning_rate=_parse_float(os.getenv("MODEL_LEARNING_RATE"), 5e-7),
        model_max_epochs=_parse_int(os.getenv("MODEL_MAX_EPOCHS"), 5000),
        model_loss_tolerance=_parse_float(os.getenv("MODEL_LOSS_TOLERANCE"), 1e-6),
        model_divergence_patience=_parse_int(os.getenv("MODEL_DIVERGENCE_PATIENCE"), 25),
        model_initial_weights=(0.0, 0.5, 0.5, 0.2),
        audit_list_limit=_parse_int(os.getenv("AUDIT_LIST_LIMIT"), 50),
        seed_synthetic_rooms=_parse_bool(os.getenv("SEED_SYNTHETIC_ROOMS"), True),
    )
