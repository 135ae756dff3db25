"""Feature extraction, linear price model training, and inference."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error

from backend.domain.constraints import TrainingConfig, validate_training_config
from backend.domain.models import FEATURE_NAMES, FeatureVector, ModelWeights, Room
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

TARGET_COLUMN = "target"
OCCUPANCY_BASELINE = 0.6
COMPETITOR_PULL = 0.5
OCCUPANCY_SENSITIVITY = 0.2


class ModelTrainingError(Exception):
    """Base exception for price model training failures."""


class ModelDivergenceError(ModelTrainingError):
    """Raised when gradient descent loss grows instead of shrinking."""


@dataclass(frozen=True)
class TrainingResult:
    weights: ModelWeights
    epochs_run: int
    final_loss: float
    converged: bool
    training_rows: int
    training_rmse: float

    def to_dict(self) -> dict[str, object]:
        return {
            "weights": list(self.weights),
            "epochs_run": self.epochs_run,
            "final_loss": self.final_loss,
            "converged": self.converged,
            "training_rows": self.training_rows,
            "training_rmse": self.training_rmse,
        }


def training_config_from_settings(settings: Optional[Settings] = None) -> TrainingConfig:
    resolved = settings or get_settings()
    config = TrainingConfig(
        learning_rate=resolved.model_learning_rate,
        max_epochs=resolved.model_max_epochs,
        loss_tolerance=resolved.model_loss_tolerance,
        divergence_patience=resolved.model_divergence_patience,
        initial_weights=tuple(resolved.model_initial_weights),
    )
    validate_training_config(config)
    return config


def competitor_average(prices: Sequence[float]) -> float:
    if not prices:
        return 0.0
    return float(sum(prices) / len(prices))


def extract_features(room: Room) -> FeatureVector:
    return FeatureVector(
        intercept=1.0,
        current_price=float(room.current_price),
        occupancy=float(room.occupancy),
        competitor_avg=competitor_average(room.competitor_prices),
    )


def synthetic_target(features: FeatureVector) -> float:
    """Self-supervised label: drift toward competitors, adjust for occupancy."""
    price = features.current_price
    return (
        price
        + COMPETITOR_PULL * (features.competitor_avg - price)
        + OCCUPANCY_SENSITIVITY * (features.occupancy - OCCUPANCY_BASELINE) * price
    )


def build_training_frame(rooms: Sequence[Room]) -> pd.DataFrame:
    """Create one model-ready row per room with its synthetic target."""

    rows = []
    for room in rooms:
        features = extract_features(room)
        row = features.to_dict()
        row[TARGET_COLUMN] = synthetic_target(features)
        rows.append(row)
    return pd.DataFrame(rows, columns=[*FEATURE_NAMES, TARGET_COLUMN])


def fit_model(
    rooms: Sequence[Room],
    config: Optional[TrainingConfig] = None,
) -> TrainingResult:
    """Fit weights with fixed-schedule batch gradient descent.

    Each epoch evaluates the total squared loss and gradient at the current
    weights, applies the update, then stops early once that loss is below
    ``loss_tolerance``. A loss that keeps growing for ``divergence_patience``
    consecutive epochs, or stops being finite, aborts training.
    """

    config = config or TrainingConfig()
    validate_training_config(config)

    frame = build_training_frame(rooms)
    weights = np.asarray(config.initial_weights, dtype=float)
    if frame.empty:
        logger.warning("Price model training skipped | rows=0 | returning initial weights")
        return TrainingResult(
            weights=_as_model_weights(weights),
            epochs_run=0,
            final_loss=0.0,
            converged=False,
            training_rows=0,
            training_rmse=0.0,
        )

    x_train = frame[list(FEATURE_NAMES)].to_numpy(dtype=float)
    y_train = frame[TARGET_COLUMN].to_numpy(dtype=float)
    row_count = len(frame)

    previous_loss = math.inf
    increasing_epochs = 0
    loss = math.inf
    epochs_run = 0
    converged = False
    for epoch in range(config.max_epochs):
        errors = x_train @ weights - y_train
        loss = float(errors @ errors)
        if not math.isfinite(loss):
            raise ModelDivergenceError(
                f"Training loss became non-finite at epoch {epoch}"
            )

        if loss > previous_loss:
            increasing_epochs += 1
            if increasing_epochs >= config.divergence_patience:
                raise ModelDivergenceError(
                    f"Training loss increased for {increasing_epochs} consecutive epochs "
                    f"(epoch={epoch}, loss={loss:.6g})"
                )
        else:
            increasing_epochs = 0
        previous_loss = loss

        gradients = 2.0 * (x_train.T @ errors)
        weights = weights - config.learning_rate * gradients / row_count
        epochs_run = epoch + 1
        if loss < config.loss_tolerance:
            converged = True
            break

    training_rmse = math.sqrt(mean_squared_error(y_train, x_train @ weights))
    result = TrainingResult(
        weights=_as_model_weights(weights),
        epochs_run=epochs_run,
        final_loss=loss,
        converged=converged,
        training_rows=row_count,
        training_rmse=training_rmse,
    )
    logger.info(
        "Price model training completed | rows=%s | epochs=%s | converged=%s | loss=%.6g | rmse=%.6f",
        row_count,
        epochs_run,
        converged,
        loss,
        training_rmse,
    )
    return result


def train_model(
    rooms: Sequence[Room],
    config: Optional[TrainingConfig] = None,
) -> ModelWeights:
    return fit_model(rooms, config).weights


def predict(weights: Sequence[float], room: Room) -> float:
    """Dot product of weights and the room's features in FEATURE_NAMES order."""
    features = extract_features(room).values()
    return float(sum(weight * value for weight, value in zip(weights, features)))


def _as_model_weights(weights: np.ndarray) -> ModelWeights:
    return tuple(float(value) for value in weights)  # type: ignore[return-value]
