"""Dependency resolver - validates task graphs and assigns execution waves.

Waves are assigned by earliest-possible placement: every task lands one
level after its deepest dependency, so every ready task shares a wave.
There is no cap on wave width; file collisions this produces are flagged
by the conflict detector rather than avoided here.
"""

from collections import Counter
from collections.abc import Sequence

from loguru import logger

from sprintplan.core.exceptions import CyclicDependency, InvalidTaskGraph
from sprintplan.decomposition.models import Task, Wave


# =============================================================================
# GRAPH VALIDATION
# =============================================================================


def validate_task_graph(tasks: Sequence[Task]) -> None:
    """
    Check referential integrity and acyclicity of a task graph.

    Args:
        tasks: Tasks to validate.

    Raises:
        InvalidTaskGraph: Empty task list, duplicate IDs or dangling
            dependency references.
        CyclicDependency: The dependencies form a cycle.
    """
    if not tasks:
        raise InvalidTaskGraph("Task graph is empty")

    counts = Counter(task.id for task in tasks)
    duplicates = sorted(tid for tid, n in counts.items() if n > 1)
    if duplicates:
        raise InvalidTaskGraph("Duplicate task ids", duplicates)

    known = set(counts)
    dangling = sorted(
        task.id for task in tasks if not task.depends_on <= known
    )
    if dangling:
        missing = sorted(
            {dep for task in tasks for dep in task.depends_on} - known
        )
        raise InvalidTaskGraph(
            f"Tasks reference unknown dependencies {missing}", dangling
        )

    cycle = detect_cycle(tasks)
    if cycle:
        raise CyclicDependency(cycle)


def detect_cycle(tasks: Sequence[Task]) -> list[int] | None:
    """
    Find one dependency cycle using three-color DFS.

    Args:
        tasks: Tasks to inspect. Unknown dependency IDs are skipped.

    Returns:
        Task IDs on the cycle in dependency order, or None.

    Example:
        >>> detect_cycle([a_depends_on_b, b_depends_on_a])
        [1, 2]
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    edges = {task.id: sorted(task.depends_on) for task in tasks}
    colors = {tid: WHITE for tid in edges}
    path: list[int] = []

    # Iterative DFS; chain depth is unbounded.
    for root in edges:
        if colors[root] != WHITE:
            continue
        stack = [(root, iter(edges[root]))]
        colors[root] = GRAY
        path.append(root)

        while stack:
            node, neighbors = stack[-1]
            advanced = False
            for neighbor in neighbors:
                if neighbor not in colors:
                    continue
                if colors[neighbor] == GRAY:
                    return path[path.index(neighbor):]
                if colors[neighbor] == WHITE:
                    colors[neighbor] = GRAY
                    path.append(neighbor)
                    stack.append((neighbor, iter(edges[neighbor])))
                    advanced = True
                    break
            if not advanced:
                colors[node] = BLACK
                path.pop()
                stack.pop()

    return None


# =============================================================================
# ORDERING & LEVELING
# =============================================================================


def topological_order(tasks: Sequence[Task]) -> list[Task]:
    """
    Order tasks so every dependency precedes its dependents.

    Depth-first visitation in input order; dependencies are visited
    (ascending by ID) before the task itself is emitted.

    Args:
        tasks: Tasks of an acyclic graph.

    Returns:
        Tasks in topological order.
    """
    task_map = {task.id: task for task in tasks}
    visited: set[int] = set()
    ordered: list[Task] = []

    for root in tasks:
        if root.id in visited:
            continue
        visited.add(root.id)
        start = task_map[root.id]
        stack = [(start, iter(sorted(start.depends_on)))]

        while stack:
            task, dep_ids = stack[-1]
            for dep_id in dep_ids:
                if dep_id in visited:
                    continue
                visited.add(dep_id)
                dep = task_map.get(dep_id)
                if dep is not None:
                    stack.append((dep, iter(sorted(dep.depends_on))))
                    break
            else:
                ordered.append(task)
                stack.pop()

    return ordered


def assign_levels(tasks: Sequence[Task]) -> dict[int, int]:
    """
    Compute the 0-based wave level of every task.

    Args:
        tasks: Tasks of a validated graph.

    Returns:
        Mapping task ID -> level.
    """
    levels: dict[int, int] = {}
    for task in topological_order(tasks):
        levels[task.id] = max(
            (levels[dep] + 1 for dep in task.depends_on if dep in levels),
            default=0,
        )
    return levels


def level_tasks(tasks: Sequence[Task]) -> list[Wave]:
    """
    Group tasks into dependency-respecting waves.

    Args:
        tasks: Tasks to schedule.

    Returns:
        Waves numbered from 1; a task's wave is strictly after the waves
        of all of its dependencies.

    Raises:
        InvalidTaskGraph: Graph is empty or references unknown tasks.
        CyclicDependency: Graph contains a cycle.

    Example:
        >>> waves = level_tasks(decomposition.tasks)
        >>> [w.task_ids for w in waves]
        [[1, 2], [3]]
    """
    validate_task_graph(tasks)

    logger.debug(f"Leveling {len(tasks)} tasks")

    levels = assign_levels(tasks)
    grouped: list[list[Task]] = [[] for _ in range(max(levels.values()) + 1)]
    for task in topological_order(tasks):
        grouped[levels[task.id]].append(task)

    waves = [
        Wave(wave_number=index + 1, tasks=wave_tasks)
        for index, wave_tasks in enumerate(grouped)
    ]

    for wave in waves:
        logger.debug(f"Wave {wave.wave_number}: tasks {wave.task_ids}")

    return waves
