"""SQLAlchemy ORM models for SprintPlan persistence."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class CheckpointRecord(Base):
    """One conductor checkpoint per feature hash."""

    __tablename__ = "conductor_checkpoints"

    feature_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"CheckpointRecord(feature_hash={self.feature_hash})"
