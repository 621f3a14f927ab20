"""Engine and session management.

The engine is owned by a single ``Database`` object that is initialised when
the application (or the cron CLI) starts and disposed when it stops. Request
handlers get sessions through ``get_db``.
"""

import logging
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from academy.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    def __init__(self):
        self.engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None

    def init(self, database_url: Optional[str] = None, **engine_kwargs) -> None:
        if self.engine is not None:
            return

        url = database_url or settings.DATABASE_URL
        if not url.startswith("sqlite"):
            engine_kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
            engine_kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
            engine_kwargs.setdefault("pool_pre_ping", True)
        engine_kwargs.setdefault("echo", settings.DB_ECHO)

        self.engine = create_engine(url, **engine_kwargs)
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )
        logger.info("Database engine initialized (%s)", self.engine.url.get_backend_name())

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self.session_factory = None
        logger.info("Database engine disposed")

    def session(self) -> Session:
        if self.session_factory is None:
            raise RuntimeError("Database is not initialized, call init() first")
        return self.session_factory()


db_manager = Database()


def get_db() -> Generator[Session, None, None]:
    session = db_manager.session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
