"""
Unit tests for oversized task splitting.
"""

import pytest

from sprintplan.decomposition.dependency_resolver import level_tasks
from sprintplan.decomposition.models import Decomposition
from sprintplan.planning.splitter import split_oversized_tasks, split_task

pytestmark = pytest.mark.unit


@pytest.fixture
def nine_files() -> list[str]:
    return [f"src/feature/file{i}.ts" for i in range(1, 10)]


class TestSplitTask:
    """Tests for split_task."""

    def test_nine_files_into_three_parts(self, make_task, nine_files):
        """Test 9 files with chunk 4 gives [4, 4, 1]."""
        task = make_task(2, files=nine_files, depends_on={1}, estimate=50, title="Build feature")

        parts = split_task(task, chunk_size=4, next_id=10)

        assert [len(p.files) for p in parts] == [4, 4, 1]
        assert [f for p in parts for f in p.files] == nine_files
        assert [p.id for p in parts] == [2, 10, 11]
        assert [p.title for p in parts] == [
            "Build feature (part 1/3)",
            "Build feature (part 2/3)",
            "Build feature (part 3/3)",
        ]

    def test_chain_dependencies(self, make_task, nine_files):
        """Test the first part inherits deps and later parts chain."""
        task = make_task(2, files=nine_files, depends_on={1})

        parts = split_task(task, chunk_size=4, next_id=10)

        assert parts[0].depends_on == frozenset({1})
        assert parts[1].depends_on == frozenset({2})
        assert parts[2].depends_on == frozenset({10})

    def test_estimate_rounded_up(self, make_task, nine_files):
        """Test each part gets ceil(estimate / parts)."""
        task = make_task(1, files=nine_files, estimate=50)

        parts = split_task(task, chunk_size=4, next_id=2)

        assert [p.estimate_minutes for p in parts] == [17, 17, 17]

    def test_keeps_other_fields(self, make_task, nine_files):
        """Test type and description carry over."""
        task = make_task(1, files=nine_files)

        parts = split_task(task, chunk_size=4, next_id=2)

        assert all(p.type == task.type for p in parts)
        assert all(p.description == task.description for p in parts)


class TestSplitOversizedTasks:
    """Tests for split_oversized_tasks."""

    def test_small_tasks_pass_through(self, attendance_decomposition):
        """Test a decomposition under the threshold is unchanged."""
        assert split_oversized_tasks(attendance_decomposition) == attendance_decomposition

    def test_threshold_is_inclusive(self, make_task):
        """Test exactly max_files files is not split."""
        decomposition = Decomposition(tasks=[make_task(1, files=[f"f{i}" for i in range(5)])])

        assert len(split_oversized_tasks(decomposition).tasks) == 1

    def test_fresh_ids_above_existing(self, make_task, nine_files):
        """Test new ids are allocated above every existing id."""
        decomposition = Decomposition(
            tasks=[
                make_task(1, files=nine_files),
                make_task(7, files=["a.ts"]),
                make_task(3, files=[f"lib/{i}.ts" for i in range(6)], depends_on={1}),
            ]
        )

        result = split_oversized_tasks(decomposition)

        assert [t.id for t in result.tasks] == [1, 8, 9, 7, 3, 10]
        assert len({t.id for t in result.tasks}) == len(result.tasks)

    def test_split_plan_still_levels(self, make_task, nine_files):
        """Test the split chain is a valid graph with later parts in later waves."""
        decomposition = Decomposition(
            tasks=[make_task(1), make_task(2, files=nine_files, depends_on={1})]
        )

        waves = level_tasks(split_oversized_tasks(decomposition).tasks)

        assert [w.task_ids for w in waves] == [[1], [2], [3], [4]]

    def test_metadata_preserved(self, make_task, nine_files):
        """Test narrative fields are passed through."""
        decomposition = Decomposition(
            tasks=[make_task(1, files=nine_files)],
            rationale="One big task",
        )

        assert split_oversized_tasks(decomposition).rationale == "One big task"

    def test_input_not_modified(self, make_task, nine_files):
        """Test the source decomposition is left as is."""
        decomposition = Decomposition(tasks=[make_task(1, files=nine_files)])

        split_oversized_tasks(decomposition)

        assert len(decomposition.tasks) == 1
        assert decomposition.tasks[0].files == nine_files

    def test_invalid_chunk_size(self, attendance_decomposition):
        """Test chunk size must be at least one."""
        with pytest.raises(ValueError):
            split_oversized_tasks(attendance_decomposition, chunk_size=0)
