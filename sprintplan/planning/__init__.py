"""Planning - plan assembly, oversize splitting and estimate calibration."""

from sprintplan.planning.assembler import (
    build_execution_plan,
    classify_strategy,
    insert_review_checkpoints,
)
from sprintplan.planning.estimation import (
    EstimationDataPoint,
    EstimationModel,
    EstimationStore,
    get_calibration_factor,
    predict_task_duration,
    train_estimation_model,
)
from sprintplan.planning.splitter import split_oversized_tasks

__all__ = [
    "EstimationDataPoint",
    "EstimationModel",
    "EstimationStore",
    "build_execution_plan",
    "classify_strategy",
    "get_calibration_factor",
    "insert_review_checkpoints",
    "predict_task_duration",
    "split_oversized_tasks",
    "train_estimation_model",
]
