"""
Engine, session factory and declarative base.

The API holds one session per request (``get_db``). The worker opens a
session per job plus short-lived ones for queue reservation, progress writes
and FAILED bookkeeping, so the pool grows with WORKER_CONCURRENCY.
"""

from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from dossier.config import get_settings

# Concurrent sessions one job loop can hold.
SESSIONS_PER_WORKER = 3

settings = get_settings()
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=max(5, settings.worker_concurrency * SESSIONS_PER_WORKER),
    max_overflow=10,
    echo=settings.debug,
    connect_args={
        "connect_timeout": settings.db_connect_timeout,
        "options": "-c timezone=UTC",
    },
)
# Reserved jobs and enqueued rows are read after commit.
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def check_db_connection() -> None:
    """Raise if Postgres is unreachable or the pgvector extension is missing."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
        has_vector = conn.execute(
            text("SELECT 1 FROM pg_extension WHERE extname = 'vector'")
        ).first()
    if has_vector is None:
        raise RuntimeError("pgvector extension not installed; run `alembic upgrade head`")


@contextmanager
def session_scope(factory: Callable[[], Session] | None = None) -> Iterator[Session]:
    """Open a session and always close it. Commits stay with the service functions."""
    db = (factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request."""
    with session_scope() as db:
        yield db
