"""Learned estimation model.

Supplies the calibration factor applied to raw plan estimates. A model is
trained from historical (estimated, actual) data points with a recency
bias, plus per-type and per-complexity factors. With fewer than three
data points the configured default factor is used instead.
"""

import json
import os
import re
import tempfile
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sprintplan.core.config import get_settings

Complexity = Literal["low", "medium", "high"]

DEFAULT_TYPE_FACTORS: dict[str, float] = {
    "migration": 0.8,
    "feature": 1.0,
    "fix": 0.9,
    "refactor": 0.9,
    "test": 0.6,
    "docs": 0.4,
}

DEFAULT_COMPLEXITY_FACTORS: dict[str, float] = {
    "low": 0.7,
    "medium": 1.0,
    "high": 1.5,
}

DEFAULT_CALIBRATION = 0.5
MIN_DATA_POINTS = 3
MIN_GROUP_SIZE = 2
RECENCY_WEIGHT = 2.0
RECENCY_WINDOW_DAYS = 14


# =============================================================================
# MODELS
# =============================================================================


class EstimationDataPoint(BaseModel):
    """One finished unit of work with its estimate and actual duration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sprint_phase: str = Field(alias="sprintPhase")
    task_type: str = Field(alias="taskType")
    file_count: int = Field(default=0, ge=0, alias="fileCount")
    estimated_minutes: float = Field(ge=0, alias="estimatedMinutes")
    actual_minutes: float = Field(ge=0, alias="actualMinutes")
    complexity: Complexity = "medium"
    date: datetime

    @property
    def ratio(self) -> float:
        """actual / estimated, 1.0 when there was no estimate."""
        if self.estimated_minutes <= 0:
            return 1.0
        return self.actual_minutes / self.estimated_minutes


class EstimationModel(BaseModel):
    """Trained calibration factors."""

    model_config = ConfigDict(frozen=True)

    overall_calibration: float
    type_factors: dict[str, float]
    complexity_factors: dict[str, float]
    file_count_slope: float
    data_point_count: int


class TaskPrediction(BaseModel):
    """Predicted duration for a single task."""

    model_config = ConfigDict(frozen=True)

    predicted_minutes: int
    confidence: Literal["low", "medium", "high"]
    base_estimate: float
    calibration: float
    type_factor: float
    complexity_factor: float


# =============================================================================
# TRAINING
# =============================================================================


def _weight(point: EstimationDataPoint, now: datetime) -> float:
    date = point.date if point.date.tzinfo else point.date.replace(tzinfo=timezone.utc)
    age_days = (now - date).total_seconds() / 86400
    return RECENCY_WEIGHT if age_days <= RECENCY_WINDOW_DAYS else 1.0


def _group_factors(
    points: Sequence[EstimationDataPoint],
    weights: Sequence[float],
    key: str,
    defaults: dict[str, float],
) -> dict[str, float]:
    groups: dict[str, list[tuple[float, float]]] = defaultdict(list)
    for point, weight in zip(points, weights):
        if point.estimated_minutes > 0:
            groups[getattr(point, key)].append((point.ratio, weight))

    factors = dict(defaults)
    for name, samples in groups.items():
        if len(samples) >= MIN_GROUP_SIZE:
            total = sum(w for _, w in samples)
            factors[name] = sum(r * w for r, w in samples) / total
    return factors


def train_estimation_model(
    points: Sequence[EstimationDataPoint],
    now: datetime | None = None,
) -> EstimationModel | None:
    """
    Train a calibration model from historical data points.

    Args:
        points: Historical data points.
        now: Reference time for recency weighting (defaults to now, UTC).

    Returns:
        EstimationModel, or None with fewer than three data points.
    """
    if len(points) < MIN_DATA_POINTS:
        return None

    now = now or datetime.now(timezone.utc)
    weights = [_weight(p, now) for p in points]
    total_weight = sum(weights)

    overall = sum(p.ratio * w for p, w in zip(points, weights)) / total_weight

    # File count impact: least-squares slope of ratio against file count.
    avg_files = sum(p.file_count for p in points) / len(points)
    avg_ratio = sum(p.ratio for p in points) / len(points)
    numerator = sum((p.file_count - avg_files) * (p.ratio - avg_ratio) for p in points)
    denominator = sum((p.file_count - avg_files) ** 2 for p in points)
    slope = numerator / denominator if denominator > 0 else 0.0

    return EstimationModel(
        overall_calibration=round(overall, 3),
        type_factors=_group_factors(points, weights, "task_type", DEFAULT_TYPE_FACTORS),
        complexity_factors=_group_factors(points, weights, "complexity", DEFAULT_COMPLEXITY_FACTORS),
        file_count_slope=round(slope, 3),
        data_point_count=len(points),
    )


def predict_task_duration(
    model: EstimationModel,
    estimated_minutes: float,
    task_type: str,
    complexity: Complexity,
    file_count: int,
) -> TaskPrediction:
    """Predict a task's duration using a trained model."""
    type_factor = model.type_factors.get(task_type, 1.0)
    complexity_factor = model.complexity_factors.get(complexity, 1.0)

    predicted = (
        estimated_minutes * model.overall_calibration * type_factor * complexity_factor
        + model.file_count_slope * file_count
    )

    if model.data_point_count >= 10:
        confidence = "high"
    elif model.data_point_count >= 5:
        confidence = "medium"
    else:
        confidence = "low"

    return TaskPrediction(
        predicted_minutes=max(1, int(predicted + 0.5)),
        confidence=confidence,
        base_estimate=estimated_minutes,
        calibration=model.overall_calibration,
        type_factor=type_factor,
        complexity_factor=complexity_factor,
    )


# =============================================================================
# PERSISTENCE
# =============================================================================


class EstimationStore:
    """Historical data points kept in a single JSON document."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[EstimationDataPoint]:
        """Load data points; a missing or corrupt file yields none."""
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return [EstimationDataPoint.model_validate(p) for p in data.get("dataPoints", [])]
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            logger.warning(f"Failed to load estimation data from {self.path}: {e}")
            return []

    def save(self, points: Sequence[EstimationDataPoint]) -> None:
        """Atomically replace the stored data points."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "dataPoints": [p.model_dump(mode="json", by_alias=True) for p in points],
        }
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def add(self, point: EstimationDataPoint) -> None:
        """Append one data point."""
        self.save([*self.load(), point])
        logger.info(f"Estimation data point added: phase={point.sprint_phase} type={point.task_type}")


def get_calibration_factor(
    store: EstimationStore | None = None,
    default: float | None = None,
) -> float:
    """
    Calibration factor to apply: learned if possible, otherwise the default.

    Args:
        store: Data source (defaults to the configured estimation file).
        default: Fallback factor (defaults to settings).
    """
    settings = get_settings()
    store = store or EstimationStore(settings.estimation_data_path)
    default = default if default is not None else settings.default_calibration_factor

    model = train_estimation_model(store.load())
    if model and model.overall_calibration > 0:
        logger.info(
            f"Using learned calibration factor {model.overall_calibration} "
            f"({model.data_point_count} data points)"
        )
        return model.overall_calibration

    logger.info(f"Using default calibration factor {default}")
    return default


# =============================================================================
# INFERENCE HELPERS
# =============================================================================


def infer_task_type(title: str) -> str:
    """Infer a task type from a title using keyword matching."""
    lower = title.lower()
    if re.search(r"\b(fix|bug|patch|hotfix)\b", lower):
        return "fix"
    if re.search(r"\b(refactor|cleanup|clean.?up|tech.?debt)\b", lower):
        return "refactor"
    if re.search(r"\btests?\b|\bspec\b|\bcoverage\b", lower):
        return "test"
    if re.search(r"\bdocs?\b|\breadme\b|\bdocumentation\b", lower):
        return "docs"
    if re.search(r"\bmigrat", lower):
        return "migration"
    return "feature"


def infer_complexity(task_count: int) -> Complexity:
    """0-2 tasks -> low, 3-5 -> medium, 6+ -> high."""
    if task_count <= 2:
        return "low"
    if task_count <= 5:
        return "medium"
    return "high"
