"""Decomposition parser - turns decomposer output into strict models.

The task decomposer is a language model returning structured data. Its
output is parsed here, at the boundary, into the frozen Task and
Decomposition models; nothing loosely typed reaches the scheduler.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from sprintplan.core.exceptions import DecompositionError
from sprintplan.decomposition.models import Decomposition, TaskType

# Decomposer type spellings; anything else becomes OTHER.
TASK_TYPE_MAP: dict[str, TaskType] = {
    "feature": TaskType.FEATURE,
    "feat": TaskType.FEATURE,
    "migration": TaskType.MIGRATION,
    "test": TaskType.TEST,
    "tests": TaskType.TEST,
    "refactor": TaskType.REFACTOR,
    "other": TaskType.OTHER,
}

TASK_KEYS = {
    "id": "id",
    "title": "title",
    "description": "description",
    "type": "type",
    "files": "files",
    "dependsOn": "dependsOn",
    "depends_on": "dependsOn",
    "estimateMinutes": "estimateMinutes",
    "estimate_minutes": "estimateMinutes",
    "activeForm": "activeForm",
    "active_form": "activeForm",
}


def parse_decomposition(raw: Decomposition | Mapping[str, Any] | str) -> Decomposition:
    """
    Parse decomposer output into a Decomposition.

    Args:
        raw: A Decomposition, the structured tool payload (camelCase or
            snake_case keys, optionally wrapped in ``{"input": ...}``),
            or its JSON text (markdown code fences tolerated).

    Returns:
        Validated Decomposition.

    Raises:
        DecompositionError: Output is not a valid decomposition. No
            partial result is ever returned.

    Example:
        >>> decomposition = parse_decomposition(tool_block.input)
        >>> len(decomposition.tasks)
        4
    """
    if isinstance(raw, Decomposition):
        return raw

    if isinstance(raw, str):
        raw = _load_json(raw)

    if not isinstance(raw, Mapping):
        raise DecompositionError(
            f"Expected an object, got {type(raw).__name__}"
        )

    if "tasks" not in raw and isinstance(raw.get("input"), Mapping):
        raw = raw["input"]

    tasks = raw.get("tasks")
    if not isinstance(tasks, list):
        raise DecompositionError("Decomposition has no 'tasks' list")

    payload = {
        "tasks": [_normalize_task(index, task) for index, task in enumerate(tasks)],
        "executionStrategy": str(raw.get("executionStrategy", raw.get("execution_strategy", ""))),
        "rationale": str(raw.get("rationale", "")),
        "teamRecommendation": str(raw.get("teamRecommendation", raw.get("team_recommendation", ""))),
    }

    try:
        decomposition = Decomposition.model_validate(payload)
    except ValidationError as e:
        summary = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        logger.warning(f"Invalid decomposition structure: {summary}")
        raise DecompositionError(f"Invalid decomposition: {summary}") from e

    logger.debug(f"Parsed decomposition with {len(decomposition.tasks)} tasks")
    return decomposition


def _load_json(text: str) -> Any:
    """Decode JSON, stripping a surrounding markdown code block."""
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"```(?:json)?\n?", "", text)
        text = text.rstrip("`").strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DecompositionError(f"Decomposition is not valid JSON: {e}") from e


def _normalize_task(index: int, task: Any) -> dict[str, Any]:
    """Rename keys and coerce the task type; leave value checks to pydantic."""
    if not isinstance(task, Mapping):
        raise DecompositionError(f"tasks.{index}: expected an object")

    normalized = {TASK_KEYS[k]: v for k, v in task.items() if k in TASK_KEYS}

    raw_type = normalized.get("type")
    if raw_type is not None:
        task_type = TASK_TYPE_MAP.get(str(raw_type).strip().lower())
        if task_type is None:
            logger.debug(f"Task {normalized.get('id')}: unknown type {raw_type!r}, using 'other'")
            task_type = TaskType.OTHER
        normalized["type"] = task_type

    for key in ("files", "dependsOn"):
        if key in normalized and not isinstance(normalized[key], list):
            raise DecompositionError(f"tasks.{index}.{key}: expected a list")

    return normalized
