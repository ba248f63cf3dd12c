"""Knowledge persistence - conductor checkpoints and their storage backends."""

from sprintplan.knowledge.checkpoint import (
    Checkpoint,
    CheckpointPhase,
    CheckpointStore,
    FileCheckpointBackend,
    SpecSnapshot,
    SqlCheckpointBackend,
    compute_feature_hash,
    create_checkpoint_store,
)

__all__ = [
    "Checkpoint",
    "CheckpointPhase",
    "CheckpointStore",
    "FileCheckpointBackend",
    "SpecSnapshot",
    "SqlCheckpointBackend",
    "compute_feature_hash",
    "create_checkpoint_store",
]
