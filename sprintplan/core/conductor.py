"""Sprint conductor - feature description to execution plan.

Pipeline:
1. Fingerprint the feature and load any checkpoint
2. Generate a spec (skipped when a checkpoint already holds one)
3. Decompose the spec into tasks (skipped when checkpointed)
4. Split oversized tasks, assemble the plan, run validation checks
5. Optional coverage validation (advisory)
6. Clear the checkpoint

A crash between stages leaves the last completed stage checkpointed, so
a rerun with the same feature and context only pays for what is left.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from sprintplan.core.collaborators import (
    CoverageValidator,
    KnowledgeContext,
    SpecGenerator,
    TaskDecomposer,
)
from sprintplan.core.config import Settings, get_settings
from sprintplan.core.exceptions import CollaboratorError, DecompositionError
from sprintplan.decomposition.dependency_resolver import validate_task_graph
from sprintplan.decomposition.models import Decomposition, ExecutionPlan
from sprintplan.decomposition.parser import parse_decomposition
from sprintplan.decomposition.validator import ValidationReport, validate_decomposition
from sprintplan.knowledge.checkpoint import (
    CheckpointPhase,
    CheckpointStore,
    SpecSnapshot,
    compute_feature_hash,
)
from sprintplan.planning.assembler import build_execution_plan
from sprintplan.planning.estimation import get_calibration_factor
from sprintplan.planning.splitter import split_oversized_tasks
from sprintplan.prompts.builder import build_spec_prompt, conventions_hint

T = TypeVar("T")


class ConductorResult(BaseModel):
    """Everything the conductor produced for one feature."""

    model_config = ConfigDict(frozen=True)

    feature_hash: str
    spec: str
    spec_score: float
    spec_iterations: int
    decomposition: Decomposition
    plan: ExecutionPlan
    validation: ValidationReport
    coverage_warnings: list[str] = Field(default_factory=list)
    total_cost_usd: float = 0.0
    resumed_from: CheckpointPhase | None = None


class SprintConductor:
    """
    Drive the collaborators and the planner with checkpoint/resume.

    Example:
        >>> conductor = SprintConductor(generator, decomposer, create_checkpoint_store())
        >>> result = await conductor.run("Add practice attendance tracking")
        >>> result.plan.strategy
        <Strategy.MIXED: 'mixed'>
    """

    def __init__(
        self,
        spec_generator: SpecGenerator,
        decomposer: TaskDecomposer,
        store: CheckpointStore,
        *,
        validator: CoverageValidator | None = None,
        settings: Settings | None = None,
        calibration_factor: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the conductor.

        Args:
            spec_generator: Spec generation collaborator.
            decomposer: Task decomposition collaborator.
            store: Checkpoint store.
            validator: Optional coverage validator.
            settings: Settings override.
            calibration_factor: Fixed calibration; learned/default when None.
            sleep: Backoff sleep (injectable for tests).
        """
        self.spec_generator = spec_generator
        self.decomposer = decomposer
        self.store = store
        self.validator = validator
        self.settings = settings or get_settings()
        self.calibration_factor = calibration_factor
        self._sleep = sleep

    async def run(
        self,
        feature: str,
        context: str | None = None,
        knowledge: KnowledgeContext | None = None,
        parallel: bool = False,
    ) -> ConductorResult:
        """
        Run (or resume) the pipeline for a feature.

        Raises:
            CollaboratorError: A collaborator kept failing; the last
                completed checkpoint is left intact.
            DecompositionError: Decomposer output was unparseable.
            CheckpointWriteError: A checkpoint could not be written.
            InvalidTaskGraph: The decomposition is not a valid graph.
        """
        knowledge = knowledge or KnowledgeContext()
        feature_hash = compute_feature_hash(feature, context)
        checkpoint = self.store.load(feature_hash)

        if checkpoint is not None and self.store.is_leased(checkpoint):
            logger.warning(
                f"Checkpoint {feature_hash} is leased until "
                f"{checkpoint.lease_expires_at}; another run may be active"
            )

        resumed_from = checkpoint.phase if checkpoint is not None else None
        total_cost = 0.0

        # Spec stage
        if checkpoint is not None and checkpoint.phase.reached(CheckpointPhase.SPEC_DONE):
            logger.info(f"Resuming {feature_hash} from checkpoint ({checkpoint.phase.value})")
            spec = checkpoint.spec
            total_cost = checkpoint.total_cost_so_far
        else:
            logger.info("Generating spec")
            prompt = build_spec_prompt(feature, context, knowledge)
            result = await self._with_retry(
                "spec",
                lambda: self.spec_generator.generate(
                    prompt,
                    self.settings.spec_quality_threshold,
                    self.settings.spec_max_iterations,
                ),
            )
            spec = SpecSnapshot(
                output=result.text,
                score=result.score,
                iterations=result.iterations,
                cost=result.cost_usd,
            )
            total_cost += result.cost_usd
            self.store.save(feature_hash, CheckpointPhase.SPEC_DONE, spec, total_cost)

        # Decompose stage
        if (
            checkpoint is not None
            and checkpoint.phase.reached(CheckpointPhase.DECOMPOSE_DONE)
            and checkpoint.decomposition is not None
        ):
            logger.info("Resuming decomposition from checkpoint")
            decomposition = checkpoint.decomposition
        else:
            logger.info("Decomposing spec into tasks")
            hint = conventions_hint(knowledge, parallel)
            raw = await self._with_retry(
                "decompose",
                lambda: self.decomposer.decompose(spec.output, hint),
            )
            decomposition = parse_decomposition(raw)
            validate_task_graph(decomposition.tasks)
            self.store.save(
                feature_hash,
                CheckpointPhase.DECOMPOSE_DONE,
                spec,
                total_cost,
                decomposition=decomposition,
            )

        # Planning (pure)
        validation = validate_decomposition(decomposition, self.settings.max_files_per_task)
        planned = decomposition
        if self.settings.auto_split:
            planned = split_oversized_tasks(
                decomposition,
                self.settings.max_files_per_task,
                self.settings.split_chunk_size,
            )

        factor = self.calibration_factor
        if factor is None:
            factor = get_calibration_factor()

        plan = build_execution_plan(
            planned,
            factor,
            review_threshold=self.settings.review_threshold,
            team_threshold=self.settings.team_threshold,
        )

        coverage_warnings = await self._coverage_warnings(planned, feature)

        self.store.clear(feature_hash)

        return ConductorResult(
            feature_hash=feature_hash,
            spec=spec.output,
            spec_score=spec.score,
            spec_iterations=spec.iterations,
            decomposition=planned,
            plan=plan,
            validation=validation,
            coverage_warnings=coverage_warnings,
            total_cost_usd=round(total_cost, 6),
            resumed_from=resumed_from,
        )

    def abandon(self, feature: str, context: str | None = None) -> None:
        """Drop any checkpoint so the feature is never resumed."""
        self.store.clear(compute_feature_hash(feature, context))

    async def _coverage_warnings(self, decomposition: Decomposition, feature: str) -> list[str]:
        if self.validator is None:
            return []
        if len(decomposition.tasks) < 2:
            logger.info("Skipping coverage validation (fewer than 2 tasks)")
            return []

        try:
            report = await self.validator.validate(decomposition.tasks, feature)
        except Exception as e:
            logger.warning(f"Coverage validation failed (non-fatal): {e}")
            return []

        logger.info(
            f"Coverage validation complete: {len(report.issues)} issues, "
            f"risk score {report.risk_score}"
        )
        return [issue.describe() for issue in report.issues]

    async def _with_retry(self, stage: str, call: Callable[[], Awaitable[T]]) -> T:
        """Await ``call`` with bounded exponential backoff."""
        attempts = self.settings.collaborator_max_attempts
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await call()
            except DecompositionError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"Stage '{stage}' attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    await self._sleep(self.settings.collaborator_base_delay * 2 ** (attempt - 1))

        raise CollaboratorError(stage, attempts, last_error) from last_error
