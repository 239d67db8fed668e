from __future__ import annotations

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from academy_auth.core.config import settings


def _connect_args(url: str) -> dict:
    # FastAPI runs sync handlers in a threadpool; SQLite must allow cross-thread use.
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create missing tables (dev/tests). Production schema changes go through Alembic."""
    from academy_auth.db.base import Base

    Base.metadata.create_all(bind=engine)
