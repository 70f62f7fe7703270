"""
Database connection/session management for the FastAPI app.
Uses SQLAlchemy; PostgreSQL in deployment, SQLite in tests.
"""

import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class Database:
    """
    Owns the engine and session factory.
    Created by the application factory, disposed on shutdown.
    """

    def __init__(self, url: str, engine: Engine = None):
        self.url = url
        self.engine = engine or self._create_engine(url)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @staticmethod
    def _create_engine(url: str) -> Engine:
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url or url.rstrip("/").endswith("sqlite:"):
                kwargs["poolclass"] = StaticPool
            return create_engine(url, **kwargs)
        return create_engine(url, pool_pre_ping=True, pool_recycle=3600)

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database engine disposed")


# PUBLIC_INTERFACE
def get_db(request: Request) -> Iterator[Session]:
    """
    Yields a new database session from the app's Database.
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
