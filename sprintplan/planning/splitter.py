"""Splitting of oversized tasks into chained sub-tasks."""

import math

from loguru import logger

from sprintplan.decomposition.models import Decomposition, Task

DEFAULT_MAX_FILES = 5
DEFAULT_CHUNK_SIZE = 4


def split_task(task: Task, chunk_size: int, next_id: int) -> list[Task]:
    """
    Split one task into a linear chain covering the same files.

    Args:
        task: Task to split.
        chunk_size: Maximum files per sub-task.
        next_id: First fresh ID available for sub-tasks after the first.

    Returns:
        Sub-tasks in chain order. The first keeps the original ID and
        dependencies; each later one depends on its predecessor.
    """
    chunks = [
        task.files[i:i + chunk_size]
        for i in range(0, len(task.files), chunk_size)
    ]
    count = len(chunks)
    estimate = math.ceil(task.estimate_minutes / count)

    subtasks: list[Task] = []
    previous: int | None = None
    for index, chunk in enumerate(chunks):
        sub_id = task.id if index == 0 else next_id + index - 1
        subtasks.append(
            task.model_copy(
                update={
                    "id": sub_id,
                    "title": f"{task.title} (part {index + 1}/{count})" if count > 1 else task.title,
                    "files": chunk,
                    "depends_on": task.depends_on if previous is None else frozenset({previous}),
                    "estimate_minutes": estimate,
                }
            )
        )
        previous = sub_id

    return subtasks


def split_oversized_tasks(
    decomposition: Decomposition,
    max_files: int = DEFAULT_MAX_FILES,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Decomposition:
    """
    Replace tasks above ``max_files`` with chains of smaller tasks.

    Args:
        decomposition: Source decomposition (not modified).
        max_files: File count above which a task is split.
        chunk_size: Files per sub-task.

    Returns:
        New Decomposition; tasks at or under the threshold pass through.

    Example:
        >>> split = split_oversized_tasks(decomposition)
        >>> [len(t.files) for t in split.tasks]
        [4, 4, 1]
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")

    next_id = decomposition.max_task_id() + 1
    tasks: list[Task] = []

    for task in decomposition.tasks:
        if task.file_count <= max_files:
            tasks.append(task)
            continue

        subtasks = split_task(task, chunk_size, next_id)
        next_id += len(subtasks) - 1
        tasks.extend(subtasks)
        logger.info(
            f"Split task {task.id} ({task.file_count} files) into "
            f"{len(subtasks)} sub-tasks: {[t.id for t in subtasks]}"
        )

    return decomposition.model_copy(update={"tasks": tasks})
