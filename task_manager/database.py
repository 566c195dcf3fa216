import logging
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import create_engine, Session, SQLModel

from task_manager import config

# Make sure to import models to register them with SQLModel.metadata
from task_manager.models import User, Task  # noqa: F401

logger = logging.getLogger(__name__)


def create_db_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Builds the engine used for the lifetime of the application process.
    """
    url = database_url or config.DATABASE_URL
    if not url:
        raise ValueError("DATABASE_URL environment variable not set for production/development.")

    # Log a redacted version for verification, not the whole URL
    logger.info("Connecting to database: %s...", url[:15])
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(
        url,
        echo=config.DATABASE_ECHO if echo is None else echo,
        connect_args=connect_args,
    )


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def dispose_engine(engine: Engine) -> None:
    logger.info("Disposing database engine")
    engine.dispose()


def get_session(request: Request) -> Generator[Session, None, None]:
    """
    Yields a session bound to the engine the running app was started with.
    """
    with Session(request.app.state.engine) as session:
        yield session
