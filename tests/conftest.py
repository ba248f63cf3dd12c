"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Generator
from pathlib import Path

import pytest

# Set test environment
os.environ.setdefault("SPRINTPLAN_LOG_LEVEL", "ERROR")
os.environ.setdefault("SPRINTPLAN_COLLABORATOR_BASE_DELAY", "0")


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator:
    """Point every on-disk location at a per-test directory."""
    from sprintplan.core.config import clear_settings_cache

    monkeypatch.setenv("SPRINTPLAN_CHECKPOINT_DIR", str(tmp_path / "checkpoints"))
    monkeypatch.setenv("SPRINTPLAN_DATABASE_URL", f"sqlite:///{tmp_path / 'checkpoints.db'}")
    monkeypatch.setenv("SPRINTPLAN_ESTIMATION_DATA_PATH", str(tmp_path / "estimation-data.json"))
    monkeypatch.setenv("SPRINTPLAN_LOG_DIR", str(tmp_path / "logs"))

    # Clear any cached settings
    clear_settings_cache()

    yield

    # Clear again after test
    clear_settings_cache()


@pytest.fixture
def make_task():
    """Factory for tasks with sensible defaults."""
    from sprintplan.decomposition.models import Task, TaskType

    def _make(
        task_id: int,
        files: list[str] | None = None,
        depends_on: set[int] | None = None,
        task_type: TaskType = TaskType.FEATURE,
        estimate: float = 30,
        title: str | None = None,
    ) -> Task:
        return Task(
            id=task_id,
            title=title or f"Task {task_id}",
            description=f"Description for task {task_id}",
            type=task_type,
            files=files or [],
            depends_on=frozenset(depends_on or ()),
            estimate_minutes=estimate,
            active_form=f"Working on task {task_id}",
        )

    return _make


@pytest.fixture
def attendance_payload() -> dict:
    """Decomposer tool payload for an attendance tracking feature."""
    return {
        "tasks": [
            {
                "id": 1,
                "title": "Add attendance schema",
                "description": "Attendance model with player and practice relations",
                "type": "migration",
                "files": ["prisma/schema.prisma", "prisma/migrations/add_attendance.sql"],
                "dependsOn": [],
                "estimateMinutes": 20,
                "activeForm": "Adding attendance schema",
            },
            {
                "id": 2,
                "title": "Add attendance API route",
                "description": "POST/GET handlers for check-ins",
                "type": "feature",
                "files": ["src/app/api/attendance/route.ts", "src/lib/attendance.ts"],
                "dependsOn": [1],
                "estimateMinutes": 30,
                "activeForm": "Adding attendance API route",
            },
            {
                "id": 3,
                "title": "Add attendance page",
                "description": "Coach view of practice attendance",
                "type": "feature",
                "files": ["src/app/attendance/page.tsx", "src/components/AttendanceList.tsx"],
                "dependsOn": [1],
                "estimateMinutes": 40,
                "activeForm": "Adding attendance page",
            },
            {
                "id": 4,
                "title": "Test attendance flow",
                "description": "API and page tests",
                "type": "test",
                "files": ["tests/attendance.test.ts"],
                "dependsOn": [2, 3],
                "estimateMinutes": 25,
                "activeForm": "Testing attendance flow",
            },
        ],
        "executionStrategy": "Schema first, then API and UI in parallel, then tests",
        "rationale": "API and UI only share the schema",
        "teamRecommendation": "Two workers for wave 2",
    }


@pytest.fixture
def attendance_decomposition(attendance_payload: dict):
    """Parsed attendance decomposition."""
    from sprintplan.decomposition.parser import parse_decomposition

    return parse_decomposition(attendance_payload)


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
