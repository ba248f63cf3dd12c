"""
File conflict detection for execution waves.

Tasks placed in the same wave may run concurrently, so any file touched
by two of them is a collision risk. The detector only flags these; the
caller decides whether to serialize the tasks.
"""

from collections.abc import Sequence

from loguru import logger

from sprintplan.decomposition.models import FileConflict, Task, Wave


def detect_file_conflicts(tasks: Sequence[Task]) -> list[FileConflict]:
    """
    Find files touched by two or more of the given tasks.

    Args:
        tasks: Tasks sharing one wave.

    Returns:
        One FileConflict per colliding file, in first-seen file order,
        with owning task IDs in task order.

    Example:
        >>> conflicts = detect_file_conflicts(wave.tasks)
        >>> [c.describe() for c in conflicts]
        ['src/lib/db.ts (tasks: 1, 3)']
    """
    file_owners: dict[str, list[int]] = {}

    for task in tasks:
        for file_path in task.files:
            owners = file_owners.setdefault(file_path, [])
            if task.id not in owners:
                owners.append(task.id)

    return [
        FileConflict(file_path=file_path, task_ids=owners)
        for file_path, owners in file_owners.items()
        if len(owners) > 1
    ]


def annotate_wave(wave: Wave) -> Wave:
    """
    Return a copy of ``wave`` carrying its file conflicts.

    Args:
        wave: Wave to inspect.

    Returns:
        Wave with ``conflicts`` populated.
    """
    conflicts = detect_file_conflicts(wave.tasks)
    for conflict in conflicts:
        logger.warning(
            f"File conflict in wave {wave.wave_number}: {conflict.describe()}"
        )
    return wave.model_copy(update={"conflicts": conflicts})
