"""Interfaces of the external collaborators driven by the conductor.

The spec generator, task decomposer and coverage validator are language
model backed services living outside this package. The conductor only
depends on these protocols and the small result models below.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from sprintplan.decomposition.models import Decomposition, Task


class SpecResult(BaseModel):
    """Output of the spec generation loop."""

    model_config = ConfigDict(frozen=True)

    text: str
    score: float
    iterations: int = Field(ge=0)
    cost_usd: float = Field(default=0.0, ge=0)


class CoverageIssue(BaseModel):
    """One finding of the coverage validator."""

    model_config = ConfigDict(frozen=True)

    severity: str
    check: str
    message: str

    def describe(self) -> str:
        return f"[{self.severity}] {self.check}: {self.message}"


class CoverageReport(BaseModel):
    """Advisory cross-layer coverage findings."""

    model_config = ConfigDict(frozen=True)

    issues: list[CoverageIssue] = Field(default_factory=list)
    risk_score: float = 0.0


class KnowledgeContext(BaseModel):
    """Opaque text blocks folded into prompts; never parsed."""

    model_config = ConfigDict(frozen=True)

    patterns: str = ""
    lessons: str = ""
    deferred: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.patterns or self.lessons or self.deferred)


@runtime_checkable
class SpecGenerator(Protocol):
    """Generate/evaluate loop producing a written feature spec."""

    async def generate(
        self,
        prompt: str,
        quality_threshold: float,
        max_iterations: int,
    ) -> SpecResult: ...


@runtime_checkable
class TaskDecomposer(Protocol):
    """Single model call turning a spec into a raw task list."""

    async def decompose(
        self,
        spec_text: str,
        conventions_hint: str,
    ) -> Decomposition | Mapping[str, Any] | str: ...


@runtime_checkable
class CoverageValidator(Protocol):
    """Optional cross-layer coverage risk scan."""

    async def validate(
        self,
        tasks: Sequence[Task],
        feature_title: str,
    ) -> CoverageReport: ...
