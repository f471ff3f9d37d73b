"""Database base and model registry."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def import_models() -> None:
    """Import all models so metadata (and Alembic) can see every table."""
    from exam_engine import models  # noqa: F401
