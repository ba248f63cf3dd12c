"""Execution plan assembly.

Combines leveling and conflict detection into a full ExecutionPlan:
review gates after wide waves, raw and calibrated estimates, team
recommendation and strategy classification. Everything here is pure;
the same decomposition and calibration factor always give an equal plan.
"""

from collections.abc import Sequence

from loguru import logger

from sprintplan.conflict.detector import annotate_wave
from sprintplan.decomposition.dependency_resolver import level_tasks
from sprintplan.decomposition.models import (
    Decomposition,
    ExecutionPlan,
    Strategy,
    Wave,
)

DEFAULT_REVIEW_THRESHOLD = 2
DEFAULT_TEAM_THRESHOLD = 2


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero for positives."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def insert_review_checkpoints(
    waves: Sequence[Wave],
    review_threshold: int = DEFAULT_REVIEW_THRESHOLD,
) -> list[Wave]:
    """
    Renumber waves, adding a zero-task review gate after wide waves.

    Args:
        waves: Implementation waves in order.
        review_threshold: Minimum task count that triggers a gate.

    Returns:
        Waves numbered consecutively from 1.
    """
    result: list[Wave] = []
    wave_number = 1

    for wave in waves:
        result.append(wave.model_copy(update={"wave_number": wave_number}))
        wave_number += 1
        if len(wave.tasks) >= review_threshold:
            result.append(
                Wave(wave_number=wave_number, tasks=[], is_review_checkpoint=True)
            )
            wave_number += 1

    return result


def classify_strategy(waves: Sequence[Wave], task_count: int) -> Strategy:
    """
    Classify implementation waves as parallel, sequential or mixed.

    Args:
        waves: Implementation waves (no review gates).
        task_count: Number of tasks in the decomposition.

    Returns:
        PARALLEL when a single wave holds every task, SEQUENTIAL when
        every wave holds exactly one task, MIXED otherwise.
    """
    if len(waves) == 1 and len(waves[0].tasks) == task_count:
        return Strategy.PARALLEL
    if all(len(wave.tasks) == 1 for wave in waves):
        return Strategy.SEQUENTIAL
    return Strategy.MIXED


def build_execution_plan(
    decomposition: Decomposition,
    calibration_factor: float,
    *,
    review_threshold: int = DEFAULT_REVIEW_THRESHOLD,
    team_threshold: int = DEFAULT_TEAM_THRESHOLD,
) -> ExecutionPlan:
    """
    Build a complete execution plan for a decomposition.

    Args:
        decomposition: Validated task decomposition.
        calibration_factor: Multiplier applied to the raw estimate (> 0).
        review_threshold: Wave size that triggers a review checkpoint.
        team_threshold: Widest-wave size from which a team is recommended.

    Returns:
        ExecutionPlan with implementation waves and review gates.

    Raises:
        ValueError: ``calibration_factor`` is not positive.
        InvalidTaskGraph: Empty or malformed task graph.
        CyclicDependency: Dependencies form a cycle.

    Example:
        >>> plan = build_execution_plan(decomposition, 0.5)
        >>> plan.strategy
        <Strategy.MIXED: 'mixed'>
    """
    if calibration_factor <= 0:
        raise ValueError(f"Calibration factor must be positive, got {calibration_factor}")

    implementation_waves = [annotate_wave(w) for w in level_tasks(decomposition.tasks)]
    waves = insert_review_checkpoints(implementation_waves, review_threshold)

    total = sum(task.estimate_minutes for task in decomposition.tasks)
    calibrated = round_half_up(total * calibration_factor)

    max_wave_size = max((len(w.tasks) for w in implementation_waves), default=0)
    strategy = classify_strategy(implementation_waves, len(decomposition.tasks))

    logger.info(
        f"Planned {len(decomposition.tasks)} tasks into "
        f"{len(implementation_waves)} waves ({strategy.value}), "
        f"{len(waves) - len(implementation_waves)} review checkpoints"
    )

    return ExecutionPlan(
        waves=waves,
        total_estimate_minutes=total,
        calibrated_estimate_minutes=calibrated,
        recommend_team=max_wave_size >= team_threshold,
        strategy=strategy,
    )
