"""Database session management."""

from collections.abc import Generator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from taskminder.config import get_settings

settings = get_settings()


def normalize_database_url(url: str) -> str:
    """Convert postgresql:// to postgresql+psycopg:// for the psycopg v3 driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


database_url = normalize_database_url(settings.DATABASE_URL)

if database_url.startswith("sqlite"):
    sqlite_options: dict = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # In-memory databases vanish when their only connection closes
        sqlite_options["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=False, **sqlite_options)
else:
    engine = create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        connect_args={"sslmode": "require"},
    )


def get_session() -> Generator[Session, None, None]:
    """Get database session with automatic cleanup."""
    with Session(engine) as session:
        yield session
