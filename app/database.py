"""Database engine and session management."""
from typing import Generator

from sqlmodel import Session, SQLModel, create_engine

from app.config import settings


def _connect_args(url: str) -> dict:
    # SQLite connections are shared across FastAPI's threadpool
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    connect_args=_connect_args(settings.DATABASE_URL),
)


def init_db() -> None:
    """Create all tables registered on SQLModel.metadata."""
    from app.models.conversation import Chat  # noqa: F401
    from app.models.user import User  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session bound to the application engine."""
    with Session(engine) as session:
        yield session
