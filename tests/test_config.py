from __future__ import annotations

from pathlib import Path

import pytest

from backend.services.model_service import training_config_from_settings
from backend.utils.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "/tmp/pricing-test.db")
    monkeypatch.setenv("ADMIN_TOKEN", "  secret  ")
    monkeypatch.setenv("MODEL_MAX_EPOCHS", "120")
    monkeypatch.setenv("MODEL_LEARNING_RATE", "1e-6")
    monkeypatch.setenv("SEED_SYNTHETIC_ROOMS", "off")

    settings = get_settings()

    assert settings.database_path == Path("/tmp/pricing-test.db")
    assert settings.admin_token == "secret"
    assert settings.model_max_epochs == 120
    assert settings.model_learning_rate == 1e-6
    assert settings.seed_synthetic_rooms is False


def test_blank_admin_token_disables_auth(monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "   ")
    assert get_settings().admin_token is None


def test_unparseable_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MODEL_MAX_EPOCHS", "many")
    monkeypatch.setenv("MODEL_LOSS_TOLERANCE", "")
    monkeypatch.setenv("MODEL_DIVERGENCE_PATIENCE", "25.5")

    settings = get_settings()

    assert settings.model_max_epochs == 5000
    assert settings.model_loss_tolerance == 1e-6
    assert settings.model_divergence_patience == 25


def test_invalid_model_settings_are_rejected(monkeypatch):
    monkeypatch.setenv("MODEL_LEARNING_RATE", "-0.1")
    with pytest.raises(ValueError):
        training_config_from_settings(get_settings())
