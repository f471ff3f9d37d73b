"""Database session management."""

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker

from exam_engine.db.engine import engine

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Prevent lazy loading issues
)


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    All-or-nothing block: commit when the body finishes, roll back on any error.

    Nested writes (a session with its pinned order, a finalize with its score)
    go through here instead of relying on implicit ORM cascades.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
