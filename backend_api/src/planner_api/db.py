from typing import Iterator

from sqlmodel import Session, SQLModel, create_engine

from . import config

_connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(config.DATABASE_URL, connect_args=_connect_args)


def create_db_and_tables() -> None:
    """Create database tables."""
    # Import for side effects: registers table metadata.
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


# Dependency to get DB session
def get_session() -> Iterator[Session]:
    """Context-managed SQLModel session."""
    with Session(engine) as session:
        yield session
