from typing import Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool

from app.config import get_settings
from app.logger import logger

Base = declarative_base()


class Database:
    """Connection pool handle.

    Opened with ``connect()`` when the application starts and closed with
    ``dispose()`` on shutdown. Request handlers reach it through ``get_db``.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None

    def _engine_options(self) -> dict:
        if self.url.startswith("sqlite"):
            options = {"connect_args": {"check_same_thread": False}}
            # In-memory SQLite lives on a single connection
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                options["poolclass"] = StaticPool
            return options

        settings = get_settings()
        return {
            "pool_pre_ping": settings.db_pool_pre_ping,  # Verify connections before using
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
        }

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    def connect(self) -> Engine:
        """Create the engine and its connection pool"""
        if self.engine is None:
            self.engine = create_engine(self.url, echo=self.echo, **self._engine_options())
            self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
            logger.info(f"Database engine created for {self.engine.url.render_as_string(hide_password=True)}")
        return self.engine

    def init_db(self):
        """Create the todos table if it does not exist yet"""
        # Registers the tables on Base.metadata
        from app import models  # noqa: F401

        try:
            Base.metadata.create_all(bind=self.connect())
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Error creating database tables: {str(e)}")
            raise

    def drop_all(self):
        """Drop the todos table; used to reset a test database"""
        from app import models  # noqa: F401

        Base.metadata.drop_all(bind=self.connect())

    def ping(self):
        with self.connect().connect() as conn:
            conn.execute(text("SELECT 1"))

    def session(self) -> Session:
        if self.SessionLocal is None:
            raise RuntimeError("Database is not connected")
        return self.SessionLocal()

    def dispose(self):
        """Close every pooled connection"""
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.SessionLocal = None


def get_db(request: Request):
    """Database session dependency"""
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.error(f"Database session error: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()
