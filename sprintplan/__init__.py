"""
SprintPlan - deterministic sprint planning with crash-safe resume.

Turns a decomposed feature into a wave-by-wave execution plan and keeps
pipeline checkpoints so a restart never re-pays for finished stages.
"""

__version__ = "0.1.0"
__author__ = "SprintPlan Team"

from sprintplan.core.conductor import ConductorResult, SprintConductor
from sprintplan.decomposition.models import (
    Decomposition,
    ExecutionPlan,
    Strategy,
    Task,
    TaskType,
    Wave,
)
from sprintplan.planning.assembler import build_execution_plan

__all__ = [
    "ConductorResult",
    "Decomposition",
    "ExecutionPlan",
    "SprintConductor",
    "Strategy",
    "Task",
    "TaskType",
    "Wave",
    "__version__",
    "build_execution_plan",
]
