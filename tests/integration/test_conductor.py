"""
Integration tests for the SprintConductor pipeline.

Uses in-memory fake collaborators and a real file checkpoint store to
check resume behavior, retries and checkpoint lifecycle.
"""

from collections.abc import Sequence

import pytest

from sprintplan.core.collaborators import (
    CoverageIssue,
    CoverageReport,
    CoverageValidator,
    SpecGenerator,
    SpecResult,
    TaskDecomposer,
)
from sprintplan.core.conductor import SprintConductor
from sprintplan.core.config import Settings
from sprintplan.core.exceptions import (
    CheckpointWriteError,
    CollaboratorError,
    CyclicDependency,
    DecompositionError,
    InvalidTaskGraph,
)
from sprintplan.decomposition.models import Strategy, Task
from sprintplan.knowledge.checkpoint import (
    CheckpointPhase,
    CheckpointStore,
    FileCheckpointBackend,
    SpecSnapshot,
    compute_feature_hash,
)

pytestmark = pytest.mark.integration


FEATURE = "Add practice attendance tracking"

# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class FakeSpecGenerator:
    """Spec generator that fails a configurable number of times."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls = 0
        self.prompts: list[str] = []

    async def generate(self, prompt: str, quality_threshold: float, max_iterations: int) -> SpecResult:
        self.calls += 1
        self.prompts.append(prompt)
        if self.calls <= self.failures:
            raise ConnectionError("model overloaded")
        return SpecResult(text="## Scope\nTrack attendance", score=8.0, iterations=2, cost_usd=0.25)


class FakeDecomposer:
    """Decomposer returning a fixed payload, optionally failing first."""

    def __init__(self, payload, failures: int = 0) -> None:
        self.payload = payload
        self.failures = failures
        self.calls = 0
        self.hints: list[str] = []

    async def decompose(self, spec_text: str, conventions_hint: str):
        self.calls += 1
        self.hints.append(conventions_hint)
        if self.calls <= self.failures:
            raise TimeoutError("decomposer timed out")
        return self.payload


class FakeValidator:
    """Coverage validator reporting one issue."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0

    async def validate(self, tasks: Sequence[Task], feature_title: str) -> CoverageReport:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return CoverageReport(
            issues=[CoverageIssue(severity="medium", check="read-path", message="No GET handler")],
            risk_score=3.5,
        )


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class BrokenBackend(FileCheckpointBackend):
    """File backend whose writes fail."""

    def put(self, key: str, payload: str) -> None:
        raise PermissionError("read-only checkpoint dir")


# =============================================================================
# TEST FIXTURES
# =============================================================================


@pytest.fixture
def store(tmp_path) -> CheckpointStore:
    return CheckpointStore(FileCheckpointBackend(tmp_path / "checkpoints"))


@pytest.fixture
def settings() -> Settings:
    return Settings(collaborator_max_attempts=3, collaborator_base_delay=0.5)


def make_conductor(generator, decomposer, store, settings, **kwargs) -> SprintConductor:
    return SprintConductor(
        generator,
        decomposer,
        store,
        settings=settings,
        calibration_factor=0.5,
        sleep=kwargs.pop("sleep", RecordingSleep()),
        **kwargs,
    )


# =============================================================================
# TEST PIPELINE
# =============================================================================


class TestSprintConductorRun:
    """Tests for a full conductor run."""

    @pytest.mark.asyncio
    async def test_full_run(self, store, settings, attendance_payload):
        """Test a fresh run produces a plan and clears its checkpoint."""
        generator = FakeSpecGenerator()
        decomposer = FakeDecomposer(attendance_payload)
        conductor = make_conductor(generator, decomposer, store, settings)

        result = await conductor.run(FEATURE)

        assert result.feature_hash == compute_feature_hash(FEATURE)
        assert result.spec.startswith("## Scope")
        assert result.spec_score == 8.0
        assert result.total_cost_usd == 0.25
        assert result.resumed_from is None
        assert result.plan.strategy == Strategy.MIXED
        assert result.plan.calibrated_estimate_minutes == 58
        assert result.validation.is_clean is True
        assert result.coverage_warnings == []
        assert store.load(result.feature_hash) is None
        assert generator.calls == 1
        assert decomposer.calls == 1

    @pytest.mark.asyncio
    async def test_prompt_and_hint(self, store, settings, attendance_payload):
        """Test context reaches the spec prompt and parallel reaches the hint."""
        generator = FakeSpecGenerator()
        decomposer = FakeDecomposer(attendance_payload)
        conductor = make_conductor(generator, decomposer, store, settings)

        await conductor.run(FEATURE, context="Coaches only", parallel=True)

        assert "Coaches only" in generator.prompts[0]
        assert "parallel-friendly" in decomposer.hints[0]

    @pytest.mark.asyncio
    async def test_oversized_tasks_split(self, store, settings, attendance_payload):
        """Test tasks over the file limit are split before planning."""
        attendance_payload["tasks"][2]["files"] = [f"src/components/c{i}.tsx" for i in range(9)]
        conductor = make_conductor(
            FakeSpecGenerator(), FakeDecomposer(attendance_payload), store, settings
        )

        result = await conductor.run(FEATURE)

        assert [t.id for t in result.decomposition.tasks] == [1, 2, 3, 5, 6, 4]
        assert len(result.validation.file_count_violations) == 1

    @pytest.mark.asyncio
    async def test_coverage_warnings(self, store, settings, attendance_payload):
        """Test coverage findings are surfaced as strings."""
        validator = FakeValidator()
        conductor = make_conductor(
            FakeSpecGenerator(), FakeDecomposer(attendance_payload), store, settings, validator=validator
        )

        result = await conductor.run(FEATURE)

        assert result.coverage_warnings == ["[medium] read-path: No GET handler"]

    @pytest.mark.asyncio
    async def test_coverage_failure_is_not_fatal(self, store, settings, attendance_payload):
        """Test a failing coverage validator does not abort the run."""
        validator = FakeValidator(error=RuntimeError("validator down"))
        conductor = make_conductor(
            FakeSpecGenerator(), FakeDecomposer(attendance_payload), store, settings, validator=validator
        )

        result = await conductor.run(FEATURE)

        assert validator.calls == 1
        assert result.coverage_warnings == []

    @pytest.mark.asyncio
    async def test_coverage_skipped_for_single_task(self, store, settings):
        """Test coverage validation needs at least two tasks."""
        payload = {"tasks": [{"id": 1, "title": "Tweak copy", "estimateMinutes": 5}]}
        validator = FakeValidator()
        conductor = make_conductor(
            FakeSpecGenerator(), FakeDecomposer(payload), store, settings, validator=validator
        )

        await conductor.run(FEATURE)

        assert validator.calls == 0


# =============================================================================
# TEST RESUME
# =============================================================================


class TestSprintConductorResume:
    """Tests for checkpoint resume."""

    @pytest.mark.asyncio
    async def test_resume_from_spec_done(self, store, settings, attendance_payload):
        """Test a stored spec is reused and not regenerated."""
        key = compute_feature_hash(FEATURE)
        store.save(
            key,
            CheckpointPhase.SPEC_DONE,
            SpecSnapshot(output="## Stored spec", score=7.5, iterations=1, cost=0.4),
            0.4,
        )
        generator = FakeSpecGenerator()
        decomposer = FakeDecomposer(attendance_payload)
        conductor = make_conductor(generator, decomposer, store, settings)

        result = await conductor.run(FEATURE)

        assert generator.calls == 0
        assert decomposer.calls == 1
        assert result.spec == "## Stored spec"
        assert result.total_cost_usd == 0.4
        assert result.resumed_from == CheckpointPhase.SPEC_DONE

    @pytest.mark.asyncio
    async def test_resume_from_decompose_done(
        self, store, settings, attendance_payload, attendance_decomposition
    ):
        """Test no collaborator is called when both stages are stored."""
        key = compute_feature_hash(FEATURE)
        store.save(
            key,
            CheckpointPhase.DECOMPOSE_DONE,
            SpecSnapshot(output="## Stored spec", score=7.5, iterations=1, cost=0.4),
            0.4,
            decomposition=attendance_decomposition,
        )
        generator = FakeSpecGenerator()
        decomposer = FakeDecomposer(attendance_payload)
        conductor = make_conductor(generator, decomposer, store, settings)

        result = await conductor.run(FEATURE)

        assert generator.calls == 0
        assert decomposer.calls == 0
        assert result.decomposition == attendance_decomposition
        assert store.load(key) is None

    @pytest.mark.asyncio
    async def test_context_selects_checkpoint(self, store, settings, attendance_payload):
        """Test a checkpoint for other context is not reused."""
        store.save(
            compute_feature_hash(FEATURE, "v1"),
            CheckpointPhase.SPEC_DONE,
            SpecSnapshot(output="## v1 spec", score=7.5, iterations=1, cost=0.4),
            0.4,
        )
        generator = FakeSpecGenerator()
        conductor = make_conductor(generator, FakeDecomposer(attendance_payload), store, settings)

        result = await conductor.run(FEATURE, context="v2")

        assert generator.calls == 1
        assert result.resumed_from is None

    @pytest.mark.asyncio
    async def test_crash_after_spec_then_resume(self, store, settings, attendance_payload):
        """Test a decomposer outage keeps spec-done and a rerun skips the spec."""
        generator = FakeSpecGenerator()
        failing = FakeDecomposer(attendance_payload, failures=10)
        conductor = make_conductor(generator, failing, store, settings)

        with pytest.raises(CollaboratorError) as exc_info:
            await conductor.run(FEATURE)

        assert exc_info.value.stage == "decompose"
        assert exc_info.value.attempts == 3
        checkpoint = store.load(compute_feature_hash(FEATURE))
        assert checkpoint.phase == CheckpointPhase.SPEC_DONE

        decomposer = FakeDecomposer(attendance_payload)
        rerun = make_conductor(generator, decomposer, store, settings)
        result = await rerun.run(FEATURE)

        assert generator.calls == 1
        assert decomposer.calls == 1
        assert result.resumed_from == CheckpointPhase.SPEC_DONE

    @pytest.mark.asyncio
    async def test_abandon(self, store, settings, attendance_payload):
        """Test abandon clears the checkpoint."""
        key = compute_feature_hash(FEATURE)
        store.save(
            key,
            CheckpointPhase.SPEC_DONE,
            SpecSnapshot(output="spec", score=7.0, iterations=1, cost=0.1),
            0.1,
        )
        conductor = make_conductor(
            FakeSpecGenerator(), FakeDecomposer(attendance_payload), store, settings
        )

        conductor.abandon(FEATURE)

        assert store.load(key) is None


# =============================================================================
# TEST FAILURES
# =============================================================================


class TestSprintConductorFailures:
    """Tests for retries and fatal errors."""

    @pytest.mark.asyncio
    async def test_retry_with_backoff(self, store, settings, attendance_payload):
        """Test transient failures are retried with doubling delays."""
        sleep = RecordingSleep()
        generator = FakeSpecGenerator(failures=2)
        conductor = make_conductor(
            generator, FakeDecomposer(attendance_payload), store, settings, sleep=sleep
        )

        result = await conductor.run(FEATURE)

        assert generator.calls == 3
        assert sleep.delays == [0.5, 1.0]
        assert result.spec_score == 8.0

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, store, settings, attendance_payload):
        """Test exhausted retries name the stage and leave no checkpoint."""
        generator = FakeSpecGenerator(failures=5)
        conductor = make_conductor(generator, FakeDecomposer(attendance_payload), store, settings)

        with pytest.raises(CollaboratorError, match="Stage 'spec' failed after 3 attempts"):
            await conductor.run(FEATURE)

        assert generator.calls == 3
        assert store.load(compute_feature_hash(FEATURE)) is None

    @pytest.mark.asyncio
    async def test_unparseable_decomposition_not_retried(self, store, settings):
        """Test a parse failure is fatal and keeps the spec checkpoint."""
        decomposer = FakeDecomposer("I could not decompose this feature.")
        conductor = make_conductor(FakeSpecGenerator(), decomposer, store, settings)

        with pytest.raises(DecompositionError):
            await conductor.run(FEATURE)

        assert decomposer.calls == 1
        assert store.load(compute_feature_hash(FEATURE)).phase == CheckpointPhase.SPEC_DONE

    @pytest.mark.asyncio
    async def test_cyclic_decomposition(self, store, settings):
        """Test a cyclic graph is never stored and the rerun decomposes again."""
        payload = {
            "tasks": [
                {"id": 1, "title": "A", "dependsOn": [2], "estimateMinutes": 5},
                {"id": 2, "title": "B", "dependsOn": [1], "estimateMinutes": 5},
            ]
        }
        conductor = make_conductor(FakeSpecGenerator(), FakeDecomposer(payload), store, settings)

        with pytest.raises(CyclicDependency):
            await conductor.run(FEATURE)

        checkpoint = store.load(compute_feature_hash(FEATURE))
        assert checkpoint.phase == CheckpointPhase.SPEC_DONE
        assert checkpoint.decomposition is None

        decomposer = FakeDecomposer(
            {"tasks": [{"id": 1, "title": "A", "type": "test", "estimateMinutes": 5}]}
        )
        rerun = make_conductor(FakeSpecGenerator(), decomposer, store, settings)
        result = await rerun.run(FEATURE)

        assert decomposer.calls == 1
        assert [w.task_ids for w in result.plan.waves] == [[1]]

    @pytest.mark.asyncio
    async def test_dangling_dependency_not_stored(self, store, settings):
        """Test a dangling reference fails the attempt before any save."""
        payload = {"tasks": [{"id": 1, "title": "A", "dependsOn": [9], "estimateMinutes": 5}]}
        conductor = make_conductor(FakeSpecGenerator(), FakeDecomposer(payload), store, settings)

        with pytest.raises(InvalidTaskGraph):
            await conductor.run(FEATURE)

        assert store.load(compute_feature_hash(FEATURE)).phase == CheckpointPhase.SPEC_DONE

    @pytest.mark.asyncio
    async def test_checkpoint_write_failure(self, tmp_path, settings, attendance_payload):
        """Test a failed checkpoint write aborts the run."""
        store = CheckpointStore(BrokenBackend(tmp_path / "checkpoints"))
        decomposer = FakeDecomposer(attendance_payload)
        conductor = make_conductor(FakeSpecGenerator(), decomposer, store, settings)

        with pytest.raises(CheckpointWriteError):
            await conductor.run(FEATURE)

        assert decomposer.calls == 0


class TestCollaboratorProtocols:
    """Tests that the fakes satisfy the collaborator protocols."""

    def test_fakes_match_protocols(self, attendance_payload):
        assert isinstance(FakeSpecGenerator(), SpecGenerator)
        assert isinstance(FakeDecomposer(attendance_payload), TaskDecomposer)
        assert isinstance(FakeValidator(), CoverageValidator)
