"""
Unit tests for decomposition policy checks.
"""

import pytest

from sprintplan.decomposition.models import Decomposition, TaskType
from sprintplan.decomposition.validator import (
    DATA_FLOW_MESSAGE,
    TEST_COVERAGE_MESSAGE,
    check_data_flow_coverage,
    check_test_coverage,
    is_api_handler_file,
    is_schema_file,
    validate_decomposition,
    validate_file_counts,
)

pytestmark = pytest.mark.unit


# =============================================================================
# TEST PATH HEURISTICS
# =============================================================================


class TestPathHeuristics:
    """Tests for schema and API handler path matching."""

    @pytest.mark.parametrize(
        "path",
        [
            "prisma/schema.prisma",
            "prisma/migrations/20240101_add_attendance/migration.sql",
            "db/schema.sql",
            "alembic/versions/abc123_add_table.py",
            "app/db/models.py",
        ],
    )
    def test_schema_files(self, path):
        assert is_schema_file(path)

    @pytest.mark.parametrize("path", ["src/lib/attendance.ts", "app/models.py", "README.md"])
    def test_non_schema_files(self, path):
        assert not is_schema_file(path)

    @pytest.mark.parametrize(
        "path",
        [
            "src/app/api/attendance/route.ts",
            "api/players/handler.go",
            "app\\api\\views.py",
        ],
    )
    def test_api_handler_files(self, path):
        assert is_api_handler_file(path)

    @pytest.mark.parametrize("path", ["src/app/attendance/page.tsx", "src/lib/route.ts"])
    def test_non_api_handler_files(self, path):
        assert not is_api_handler_file(path)


# =============================================================================
# TEST CHECKS
# =============================================================================


class TestValidateFileCounts:
    """Tests for validate_file_counts."""

    def test_reports_oversized_tasks(self, make_task):
        """Test tasks above the threshold are reported with details."""
        decomposition = Decomposition(
            tasks=[
                make_task(1, files=[f"f{i}" for i in range(6)], title="Huge task"),
                make_task(2, files=["a.ts"]),
            ]
        )

        violations = validate_file_counts(decomposition, max_files=5)

        assert len(violations) == 1
        assert violations[0].task_id == 1
        assert violations[0].task_title == "Huge task"
        assert violations[0].file_count == 6
        assert violations[0].max_files == 5
        assert "Task #1" in violations[0].describe()

    def test_at_threshold_is_fine(self, make_task):
        """Test exactly max_files files passes."""
        decomposition = Decomposition(tasks=[make_task(1, files=["a", "b", "c"])])

        assert validate_file_counts(decomposition, max_files=3) == []


class TestDataFlowCoverage:
    """Tests for check_data_flow_coverage."""

    def test_schema_without_api_flagged(self, make_task):
        """Test a schema change with no API handler is flagged."""
        decomposition = Decomposition(
            tasks=[
                make_task(1, files=["prisma/schema.prisma"]),
                make_task(2, files=["src/app/attendance/page.tsx"]),
            ]
        )

        warnings = check_data_flow_coverage(decomposition)

        assert [w.task_id for w in warnings] == [1]
        assert warnings[0].schema_files == ["prisma/schema.prisma"]
        assert warnings[0].message == DATA_FLOW_MESSAGE

    def test_migration_type_flagged(self, make_task):
        """Test a migration-typed task is flagged even without schema paths."""
        decomposition = Decomposition(
            tasks=[make_task(1, files=["scripts/backfill.ts"], task_type=TaskType.MIGRATION)]
        )

        assert len(check_data_flow_coverage(decomposition)) == 1

    def test_any_api_handler_satisfies(self, attendance_decomposition):
        """Test an API handler anywhere suppresses the warning."""
        assert check_data_flow_coverage(attendance_decomposition) == []

    def test_no_schema_changes(self, make_task):
        """Test decompositions without schema work are clean."""
        decomposition = Decomposition(tasks=[make_task(1, files=["src/lib/a.ts"])])

        assert check_data_flow_coverage(decomposition) == []


class TestTestCoverage:
    """Tests for check_test_coverage."""

    def test_missing_tests(self, make_task):
        """Test a single advisory without test tasks."""
        decomposition = Decomposition(tasks=[make_task(1), make_task(2)])

        assert check_test_coverage(decomposition) == TEST_COVERAGE_MESSAGE

    def test_with_tests(self, attendance_decomposition):
        """Test nothing is emitted when a test task exists."""
        assert check_test_coverage(attendance_decomposition) is None


class TestValidateDecomposition:
    """Tests for validate_decomposition."""

    def test_clean_report(self, attendance_decomposition):
        """Test the attendance decomposition passes every check."""
        report = validate_decomposition(attendance_decomposition)

        assert report.is_clean is True
        assert report.warnings() == []

    def test_combined_report(self, make_task):
        """Test every check contributes to the report."""
        decomposition = Decomposition(
            tasks=[
                make_task(1, files=["prisma/schema.prisma"], task_type=TaskType.MIGRATION),
                make_task(2, files=[f"src/f{i}.ts" for i in range(7)]),
            ]
        )

        report = validate_decomposition(decomposition, max_files=5)

        assert report.is_clean is False
        assert len(report.file_count_violations) == 1
        assert len(report.data_flow_warnings) == 1
        assert report.test_coverage_warning == TEST_COVERAGE_MESSAGE
        assert len(report.warnings()) == 3
