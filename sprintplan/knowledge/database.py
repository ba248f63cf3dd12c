"""Database engine and session management for the SQL checkpoint backend."""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from sprintplan.knowledge.models import Base


def create_db_engine(database_url: str, echo: bool = False, timeout: float = 5.0) -> Engine:
    """
    Create an engine and make sure the schema exists.

    Args:
        database_url: SQLAlchemy URL.
        echo: Log SQL statements.
        timeout: Seconds to wait on a locked database / connection.

    Returns:
        Engine instance.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        connect_args = {"timeout": timeout, "check_same_thread": False}
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, echo=echo, connect_args=connect_args)
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_timeout=timeout,
            pool_pre_ping=True,
        )

    Base.metadata.create_all(engine)
    logger.info(f"Database engine created for {url.render_as_string(hide_password=True)}")

    return engine


@contextmanager
def session_scope(session_maker: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional session.

    Commits on success and rolls back on any exception.

    Example:
        >>> with session_scope(maker) as session:
        ...     session.merge(record)
    """
    with session_maker() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
