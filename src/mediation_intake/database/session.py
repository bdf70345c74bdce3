"""
Database session management
"""
from sqlalchemy.orm import sessionmaker, Session
from typing import Optional

from mediation_intake.database.connection import DatabasePool
from mediation_intake.database.models.base import Base


# Session factory - will be initialized after pool is ready
SessionLocal: Optional[sessionmaker] = None


def init_session_factory() -> None:
    """
    Initialize the session factory with the database engine.
    Should be called after DatabasePool.initialize()
    """
    global SessionLocal
    if SessionLocal is None:
        engine = DatabasePool.get_engine()
        SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=engine,
        )


def init_db() -> None:
    """
    Create all tables defined in models.
    Production schemas are managed out of band; this covers SQLite and tests.
    """
    # Registers the mapped classes on Base.metadata
    import mediation_intake.database.models  # noqa: F401

    engine = DatabasePool.get_engine()
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    """
    Get a new database session from the pool.
    Use this for manual session management outside of FastAPI dependencies.

    Raises:
        RuntimeError: If session factory is not initialized
    """
    if SessionLocal is None:
        init_session_factory()

    if SessionLocal is None:
        raise RuntimeError("Session factory not initialized. Call DatabasePool.initialize() first.")

    return SessionLocal()
