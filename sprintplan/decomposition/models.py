"""Pydantic models for task decomposition and execution planning.

This module defines the data structures shared by the scheduler, the
conflict detector and the plan assembler: tasks, decompositions, waves
and execution plans. Tasks and decompositions are immutable once
parsed; waves and plans are derived fresh on every planning call.
"""

from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    model_validator,
)


# =============================================================================
# ENUMS
# =============================================================================


class TaskType(str, Enum):
    """Kind of work a task represents."""

    FEATURE = "feature"
    MIGRATION = "migration"
    TEST = "test"
    REFACTOR = "refactor"
    OTHER = "other"


class Strategy(str, Enum):
    """Overall shape of an execution plan."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    MIXED = "mixed"


# =============================================================================
# TASKS
# =============================================================================


class Task(BaseModel):
    """Atomic unit of planned work.

    Example:
        >>> task = Task(
        ...     id=2,
        ...     title="Add attendance API route",
        ...     description="POST/GET handlers for check-in records",
        ...     type=TaskType.FEATURE,
        ...     files=["src/app/api/attendance/route.ts"],
        ...     depends_on={1},
        ...     estimate_minutes=30,
        ...     active_form="Adding attendance API route",
        ... )
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(
        ...,
        gt=0,
        description="Task identifier, unique within a decomposition",
    )
    title: str = Field(
        ...,
        min_length=1,
        description="Imperative task title",
    )
    description: str = Field(
        default="",
        description="Detailed description with acceptance criteria",
    )
    type: TaskType = Field(
        default=TaskType.FEATURE,
        description="Task type",
    )
    files: list[str] = Field(
        default_factory=list,
        description="Files this task touches, in order",
    )
    depends_on: frozenset[int] = Field(
        default_factory=frozenset,
        alias="dependsOn",
        description="Task IDs that must complete first",
    )
    estimate_minutes: float = Field(
        ...,
        gt=0,
        alias="estimateMinutes",
        description="Estimated minutes to complete",
    )
    active_form: str = Field(
        default="",
        alias="activeForm",
        description="Present-participle label for progress display",
    )

    @model_validator(mode="after")
    def _no_self_dependency(self) -> "Task":
        if self.id in self.depends_on:
            raise ValueError(f"Task {self.id} depends on itself")
        return self

    @field_serializer("depends_on")
    def _serialize_depends_on(self, value: frozenset[int]) -> list[int]:
        return sorted(value)

    @property
    def file_count(self) -> int:
        """Number of files this task touches."""
        return len(self.files)


class Decomposition(BaseModel):
    """Task list plus the decomposer's narrative metadata.

    ``execution_strategy``, ``rationale`` and ``team_recommendation`` are
    passed through untouched; the planner never interprets them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tasks: list[Task] = Field(
        default_factory=list,
        description="Decomposed tasks",
    )
    execution_strategy: str = Field(
        default="",
        alias="executionStrategy",
    )
    rationale: str = Field(default="")
    team_recommendation: str = Field(
        default="",
        alias="teamRecommendation",
    )

    def task_map(self) -> dict[int, Task]:
        """Map task ID -> Task."""
        return {task.id: task for task in self.tasks}

    def max_task_id(self) -> int:
        """Highest task ID, 0 for an empty decomposition."""
        return max((task.id for task in self.tasks), default=0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# WAVES & PLANS
# =============================================================================


class FileConflict(BaseModel):
    """A file touched by more than one task in the same wave."""

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(description="Path to conflicting file")
    task_ids: list[int] = Field(description="IDs of the tasks touching it")

    def describe(self) -> str:
        """Human-readable descriptor, e.g. ``"a.ts (tasks: 1, 2)"``."""
        return f"{self.file_path} (tasks: {', '.join(str(t) for t in self.task_ids)})"


class Wave(BaseModel):
    """Tasks assigned the same scheduling level."""

    model_config = ConfigDict(frozen=True)

    wave_number: int = Field(ge=1)
    tasks: list[Task] = Field(default_factory=list)
    conflicts: list[FileConflict] = Field(default_factory=list)
    is_review_checkpoint: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def file_conflicts(self) -> list[str]:
        return [conflict.describe() for conflict in self.conflicts]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def task_ids(self) -> list[int]:
        return [task.id for task in self.tasks]


class ExecutionPlan(BaseModel):
    """Wave-by-wave execution plan with estimates."""

    model_config = ConfigDict(frozen=True)

    waves: list[Wave] = Field(default_factory=list)
    total_estimate_minutes: float = 0
    calibrated_estimate_minutes: int = 0
    recommend_team: bool = False
    strategy: Strategy = Strategy.SEQUENTIAL

    @property
    def implementation_waves(self) -> list[Wave]:
        """Waves that carry tasks."""
        return [w for w in self.waves if not w.is_review_checkpoint]

    @property
    def review_checkpoints(self) -> list[Wave]:
        """Injected review-gate waves."""
        return [w for w in self.waves if w.is_review_checkpoint]

    def wave_of(self, task_id: int) -> int | None:
        """Wave number holding ``task_id``, if any."""
        for wave in self.waves:
            if task_id in wave.task_ids:
                return wave.wave_number
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")
