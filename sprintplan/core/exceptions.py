"""Exception hierarchy for SprintPlan."""

from collections.abc import Iterable


class SprintPlanError(Exception):
    """Base exception for SprintPlan errors."""

    pass


class InvalidTaskGraph(SprintPlanError):
    """Task graph is malformed (empty, duplicate ids, dangling references)."""

    def __init__(self, message: str, task_ids: Iterable[int] = ()) -> None:
        self.task_ids = list(task_ids)
        if self.task_ids:
            message = f"{message} (tasks: {', '.join(str(t) for t in self.task_ids)})"
        super().__init__(message)


class CyclicDependency(InvalidTaskGraph):
    """Task dependencies form a cycle."""

    def __init__(self, task_ids: Iterable[int]) -> None:
        ids = list(task_ids)
        path = " -> ".join(str(t) for t in [*ids, ids[0]]) if ids else ""
        super().__init__(f"Circular dependency detected: {path}", ids)


class DecompositionError(SprintPlanError):
    """Decomposer output could not be parsed into a Decomposition."""

    pass


class CheckpointWriteError(SprintPlanError):
    """Checkpoint could not be persisted or deleted."""

    def __init__(self, feature_hash: str, reason: str) -> None:
        self.feature_hash = feature_hash
        super().__init__(f"Checkpoint write failed for {feature_hash}: {reason}")


class CollaboratorError(SprintPlanError):
    """External collaborator kept failing after all retries."""

    def __init__(self, stage: str, attempts: int, cause: BaseException | None = None) -> None:
        self.stage = stage
        self.attempts = attempts
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Stage '{stage}' failed after {attempts} attempts{detail}")
