"""Task decomposition - task graph models, parsing, leveling and validation.

- Models (tasks, decompositions, waves, plans)
- Boundary parsing of decomposer output
- Dependency resolution (task graph -> execution waves)
- Validation (policy checks over a finished decomposition)
"""

from sprintplan.decomposition.dependency_resolver import (
    detect_cycle,
    level_tasks,
    topological_order,
    validate_task_graph,
)
from sprintplan.decomposition.models import (
    Decomposition,
    ExecutionPlan,
    FileConflict,
    Strategy,
    Task,
    TaskType,
    Wave,
)
from sprintplan.decomposition.parser import parse_decomposition
from sprintplan.decomposition.validator import (
    DataFlowWarning,
    FileCountViolation,
    ValidationReport,
    check_data_flow_coverage,
    check_test_coverage,
    validate_decomposition,
    validate_file_counts,
)

__all__ = [
    # Models
    "Decomposition",
    "ExecutionPlan",
    "FileConflict",
    "Strategy",
    "Task",
    "TaskType",
    "Wave",
    # Parsing
    "parse_decomposition",
    # Dependency Resolution
    "detect_cycle",
    "level_tasks",
    "topological_order",
    "validate_task_graph",
    # Validation
    "DataFlowWarning",
    "FileCountViolation",
    "ValidationReport",
    "check_data_flow_coverage",
    "check_test_coverage",
    "validate_decomposition",
    "validate_file_counts",
]
