"""Core module - configuration, errors, logging and the conductor pipeline."""

from sprintplan.core.config import Settings, clear_settings_cache, get_settings
from sprintplan.core.exceptions import (
    CheckpointWriteError,
    CollaboratorError,
    CyclicDependency,
    DecompositionError,
    InvalidTaskGraph,
    SprintPlanError,
)

__all__ = [
    "CheckpointWriteError",
    "CollaboratorError",
    "CyclicDependency",
    "DecompositionError",
    "InvalidTaskGraph",
    "Settings",
    "SprintPlanError",
    "clear_settings_cache",
    "get_settings",
]
