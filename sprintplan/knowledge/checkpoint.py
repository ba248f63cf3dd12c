"""Conductor checkpoints - resume a pipeline without re-paying for stages.

A checkpoint records how far the conductor pipeline got for one feature,
keyed by a stable fingerprint of the feature text. Per feature hash the
record moves through ``absent -> spec-done -> decompose-done -> absent``;
each save replaces the whole record and a completed run deletes it.

Storage is pluggable through ``CheckpointBackend``: flat JSON files or a
SQL table. Reads never fail the caller (a lost checkpoint only costs a
recomputation); writes always surface errors.
"""

import hashlib
import os
import re
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from sprintplan.core.config import Settings, get_settings
from sprintplan.core.exceptions import CheckpointWriteError
from sprintplan.decomposition.models import Decomposition
from sprintplan.knowledge.database import create_db_engine, session_scope
from sprintplan.knowledge.models import CheckpointRecord

FEATURE_HASH_LENGTH = 16
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def compute_feature_hash(feature: str, context: str | None = None) -> str:
    """
    Compute a deterministic fingerprint for a feature and optional context.

    Same feature and context always give the same hash, and so the same
    checkpoint.

    Example:
        >>> len(compute_feature_hash("Add attendance tracking"))
        16
    """
    data = f"{feature}|{context or ''}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:FEATURE_HASH_LENGTH]


# =============================================================================
# MODELS
# =============================================================================


class CheckpointPhase(str, Enum):
    """Last pipeline stage completed for a feature."""

    SPEC_DONE = "spec-done"
    DECOMPOSE_DONE = "decompose-done"

    @property
    def rank(self) -> int:
        return _PHASE_RANK[self]

    def reached(self, other: "CheckpointPhase") -> bool:
        """Whether this phase is at or after ``other``."""
        return self.rank >= other.rank


_PHASE_RANK = {
    CheckpointPhase.SPEC_DONE: 1,
    CheckpointPhase.DECOMPOSE_DONE: 2,
}


class SpecSnapshot(BaseModel):
    """Result of the spec generation stage."""

    model_config = ConfigDict(frozen=True)

    output: str
    score: float
    iterations: int = Field(ge=0)
    cost: float = Field(ge=0)


class Checkpoint(BaseModel):
    """Crash-recovery record for one feature hash."""

    model_config = ConfigDict(frozen=True)

    feature_hash: str
    phase: CheckpointPhase
    spec: SpecSnapshot
    decomposition: Decomposition | None = None
    total_cost_so_far: float = Field(ge=0)
    completed_at: datetime
    lease_expires_at: datetime | None = None


# =============================================================================
# BACKENDS
# =============================================================================


class CheckpointBackend(Protocol):
    """Key -> serialized record storage."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, payload: str) -> None: ...

    def delete(self, key: str) -> None: ...


class FileCheckpointBackend:
    """
    One ``<key>.json`` document per checkpoint in a directory.

    Writes go to a temporary file in the same directory and are moved
    into place with ``os.replace``, so a crash never leaves a partial
    record behind.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def put(self, key: str, payload: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class SqlCheckpointBackend:
    """Checkpoints stored as rows of the ``conductor_checkpoints`` table."""

    def __init__(self, database_url: str | None = None, engine: Engine | None = None) -> None:
        if engine is None:
            if database_url is None:
                raise ValueError("SqlCheckpointBackend needs a database_url or an engine")
            engine = create_db_engine(database_url)
        self.engine = engine
        self._session_maker = sessionmaker(engine, expire_on_commit=False)

    def get(self, key: str) -> str | None:
        with self._session_maker() as session:
            record = session.get(CheckpointRecord, key)
            return record.payload if record is not None else None

    def put(self, key: str, payload: str) -> None:
        with session_scope(self._session_maker) as session:
            session.merge(CheckpointRecord(feature_hash=key, payload=payload))

    def delete(self, key: str) -> None:
        with session_scope(self._session_maker) as session:
            record = session.get(CheckpointRecord, key)
            if record is not None:
                session.delete(record)


# =============================================================================
# STORE
# =============================================================================


class CheckpointStore:
    """
    Save, load and clear conductor checkpoints.

    Writes for the same feature hash are serialized by an in-process lock
    per key. Across processes the last writer wins; the optional lease is
    advisory only.

    Example:
        >>> store = CheckpointStore(FileCheckpointBackend(".sprintplan/checkpoints"))
        >>> store.save(h, CheckpointPhase.SPEC_DONE, spec=snapshot, total_cost_so_far=0.12)
        >>> store.load(h).phase
        <CheckpointPhase.SPEC_DONE: 'spec-done'>
        >>> store.clear(h)
    """

    def __init__(
        self,
        backend: CheckpointBackend,
        lease_seconds: int | None = None,
        lock_timeout: float = 10.0,
    ) -> None:
        self.backend = backend
        self.lease_seconds = lease_seconds
        self.lock_timeout = lock_timeout
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, feature_hash: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(feature_hash, threading.Lock())

    def _acquire(self, feature_hash: str) -> threading.Lock:
        lock = self._lock_for(feature_hash)
        if not lock.acquire(timeout=self.lock_timeout):
            raise CheckpointWriteError(
                feature_hash, f"timed out after {self.lock_timeout}s waiting for key lock"
            )
        return lock

    def save(
        self,
        feature_hash: str,
        phase: CheckpointPhase | str,
        spec: SpecSnapshot,
        total_cost_so_far: float,
        decomposition: Decomposition | None = None,
    ) -> Checkpoint:
        """
        Persist the full checkpoint for ``feature_hash``.

        Any prior record for the key is replaced, never merged.

        Raises:
            ValueError: Invalid key, or ``decompose-done`` without a
                decomposition.
            CheckpointWriteError: The backend failed to persist the record.
        """
        _check_key(feature_hash)
        phase = CheckpointPhase(phase)
        if phase == CheckpointPhase.DECOMPOSE_DONE and decomposition is None:
            raise ValueError("decompose-done checkpoint requires a decomposition")

        now = datetime.now(timezone.utc)
        checkpoint = Checkpoint(
            feature_hash=feature_hash,
            phase=phase,
            spec=spec,
            decomposition=decomposition,
            total_cost_so_far=total_cost_so_far,
            completed_at=now,
            lease_expires_at=(
                now + timedelta(seconds=self.lease_seconds) if self.lease_seconds else None
            ),
        )
        payload = checkpoint.model_dump_json(by_alias=True, indent=2)

        lock = self._acquire(feature_hash)
        try:
            self.backend.put(feature_hash, payload)
        except Exception as e:
            logger.error(f"Failed to save checkpoint {feature_hash}: {e}")
            raise CheckpointWriteError(feature_hash, str(e)) from e
        finally:
            lock.release()

        logger.info(f"Checkpoint saved: {feature_hash} phase={phase.value}")
        return checkpoint

    def load(self, feature_hash: str) -> Checkpoint | None:
        """
        Load the checkpoint for ``feature_hash``.

        Returns:
            The checkpoint, or None when absent, unreadable, malformed or
            recorded under a different hash.
        """
        if not _KEY_PATTERN.match(feature_hash):
            logger.warning(f"Ignoring invalid checkpoint key {feature_hash!r}")
            return None

        try:
            payload = self.backend.get(feature_hash)
        except Exception as e:
            logger.warning(f"Failed to read checkpoint {feature_hash}: {e}")
            return None

        if payload is None:
            return None

        try:
            checkpoint = Checkpoint.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(f"Discarding malformed checkpoint {feature_hash}: {e.error_count()} errors")
            return None

        if checkpoint.feature_hash != feature_hash:
            logger.warning(
                f"Checkpoint {feature_hash} holds record for {checkpoint.feature_hash}, ignoring"
            )
            return None

        logger.info(f"Checkpoint loaded: {feature_hash} phase={checkpoint.phase.value}")
        return checkpoint

    def clear(self, feature_hash: str) -> None:
        """
        Delete the checkpoint for ``feature_hash``; no-op when absent.

        Raises:
            CheckpointWriteError: The backend failed to delete the record.
        """
        _check_key(feature_hash)
        lock = self._acquire(feature_hash)
        try:
            self.backend.delete(feature_hash)
        except Exception as e:
            logger.error(f"Failed to clear checkpoint {feature_hash}: {e}")
            raise CheckpointWriteError(feature_hash, str(e)) from e
        finally:
            lock.release()

        logger.info(f"Checkpoint cleared: {feature_hash}")

    @staticmethod
    def is_leased(checkpoint: Checkpoint, now: datetime | None = None) -> bool:
        """Whether another run still holds the checkpoint's lease."""
        if checkpoint.lease_expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return checkpoint.lease_expires_at > now


def _check_key(feature_hash: str) -> None:
    if not _KEY_PATTERN.match(feature_hash):
        raise ValueError(f"Invalid checkpoint key {feature_hash!r}")


def create_checkpoint_store(settings: Settings | None = None) -> CheckpointStore:
    """
    Build the checkpoint store configured in settings.

    Returns:
        CheckpointStore over the file or SQL backend.
    """
    settings = settings or get_settings()

    backend: CheckpointBackend
    if settings.checkpoint_backend == "sql":
        backend = SqlCheckpointBackend(settings.database_url)
    else:
        backend = FileCheckpointBackend(settings.checkpoint_dir)

    logger.debug(f"Using {settings.checkpoint_backend} checkpoint backend")
    return CheckpointStore(backend, lease_seconds=settings.checkpoint_lease_seconds)
