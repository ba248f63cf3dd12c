"""Policy checks over a finished decomposition.

Three independent, read-only, advisory checks:
- file-count violations (tasks touching too many files)
- data-flow coverage (schema changes with no API handler anywhere)
- test coverage (no task of type ``test``)

None of these block planning; they surface as warnings.
"""

from collections.abc import Iterable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from sprintplan.decomposition.models import Decomposition, Task, TaskType

DEFAULT_MAX_FILES = 5

SCHEMA_PATH_MARKERS = (
    "schema.prisma",
    "migrations/",
    "schema.sql",
    "alembic/versions/",
)
API_PATH_MARKER = "/api/"
API_HANDLER_MARKERS = (
    "route.ts",
    "route.js",
    "handler",
    "views.py",
    "routes.py",
    "endpoints",
)

DATA_FLOW_MESSAGE = (
    "Schema/migration changes detected but no API route handler in any task. "
    "Ensure the new fields are processed by the API layer."
)
TEST_COVERAGE_MESSAGE = (
    "WARNING: No test tasks in decomposition. "
    "Consider adding tests for new functionality."
)


# =============================================================================
# RESULTS
# =============================================================================


class FileCountViolation(BaseModel):
    """Task touching more files than allowed."""

    model_config = ConfigDict(frozen=True)

    task_id: int
    task_title: str
    file_count: int
    max_files: int

    def describe(self) -> str:
        return (
            f'Task #{self.task_id} "{self.task_title}": {self.file_count} files '
            f"(max {self.max_files}). Consider splitting."
        )


class DataFlowWarning(BaseModel):
    """Schema change that is not wired through to an API handler."""

    model_config = ConfigDict(frozen=True)

    task_id: int
    task_title: str
    schema_files: list[str] = Field(default_factory=list)
    message: str = DATA_FLOW_MESSAGE

    def describe(self) -> str:
        return f'Task #{self.task_id} "{self.task_title}": {self.message}'


class ValidationReport(BaseModel):
    """Combined result of all decomposition checks."""

    model_config = ConfigDict(frozen=True)

    file_count_violations: list[FileCountViolation] = Field(default_factory=list)
    data_flow_warnings: list[DataFlowWarning] = Field(default_factory=list)
    test_coverage_warning: str | None = None

    @property
    def is_clean(self) -> bool:
        """True when no check raised anything."""
        return not (
            self.file_count_violations
            or self.data_flow_warnings
            or self.test_coverage_warning
        )

    def warnings(self) -> list[str]:
        """All findings as human-readable strings."""
        lines = [v.describe() for v in self.file_count_violations]
        lines.extend(w.describe() for w in self.data_flow_warnings)
        if self.test_coverage_warning:
            lines.append(self.test_coverage_warning)
        return lines


# =============================================================================
# PATH HEURISTICS
# =============================================================================


def is_schema_file(path: str) -> bool:
    """Whether a path looks like a schema or migration file."""
    normalized = path.replace("\\", "/")
    if any(marker in normalized for marker in SCHEMA_PATH_MARKERS):
        return True
    return normalized.endswith("models.py") and "/db/" in f"/{normalized}"


def is_api_handler_file(path: str) -> bool:
    """Whether a path looks like an API route handler."""
    normalized = "/" + path.replace("\\", "/")
    return API_PATH_MARKER in normalized and any(
        marker in normalized for marker in API_HANDLER_MARKERS
    )


def _touches_schema(task: Task) -> bool:
    return task.type == TaskType.MIGRATION or any(is_schema_file(f) for f in task.files)


# =============================================================================
# CHECKS
# =============================================================================


def validate_file_counts(
    decomposition: Decomposition,
    max_files: int = DEFAULT_MAX_FILES,
) -> list[FileCountViolation]:
    """
    Report tasks touching more than ``max_files`` files.

    Args:
        decomposition: Decomposition to inspect.
        max_files: Allowed files per task.

    Returns:
        One violation per oversized task, in task order.
    """
    return [
        FileCountViolation(
            task_id=task.id,
            task_title=task.title,
            file_count=task.file_count,
            max_files=max_files,
        )
        for task in decomposition.tasks
        if task.file_count > max_files
    ]


def check_data_flow_coverage(decomposition: Decomposition) -> list[DataFlowWarning]:
    """
    Flag schema/migration tasks when no task touches an API handler.

    The check is a heuristic proxy for "a data-model change was not wired
    through to its consumer"; any API handler anywhere in the
    decomposition satisfies it.

    Args:
        decomposition: Decomposition to inspect.

    Returns:
        One warning per schema-touching task, or an empty list.
    """
    all_files: Iterable[str] = (f for task in decomposition.tasks for f in task.files)
    if any(is_api_handler_file(f) for f in all_files):
        return []

    return [
        DataFlowWarning(
            task_id=task.id,
            task_title=task.title,
            schema_files=[f for f in task.files if is_schema_file(f)],
        )
        for task in decomposition.tasks
        if _touches_schema(task)
    ]


def check_test_coverage(decomposition: Decomposition) -> str | None:
    """Return an advisory string when no task is of type ``test``."""
    if any(task.type == TaskType.TEST for task in decomposition.tasks):
        return None
    return TEST_COVERAGE_MESSAGE


def validate_decomposition(
    decomposition: Decomposition,
    max_files: int = DEFAULT_MAX_FILES,
) -> ValidationReport:
    """
    Run every decomposition check.

    Args:
        decomposition: Decomposition to inspect.
        max_files: Allowed files per task.

    Returns:
        ValidationReport with all findings.
    """
    report = ValidationReport(
        file_count_violations=validate_file_counts(decomposition, max_files),
        data_flow_warnings=check_data_flow_coverage(decomposition),
        test_coverage_warning=check_test_coverage(decomposition),
    )

    if report.is_clean:
        logger.debug("Decomposition passed all validation checks")
    else:
        logger.warning(f"Decomposition validation raised {len(report.warnings())} warnings")

    return report
