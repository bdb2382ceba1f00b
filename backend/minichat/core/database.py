"""
SQLAlchemy engine, session factory and declarative base.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from minichat.core.config import settings


def build_engine(database_url: str):
    """Create an engine; SQLite connections are shared across FastAPI's worker threads."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    FastAPI dependency yielding a database session.

    Yields:
        Session: closed when the request finishes
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create all tables."""
    from minichat.models import chat  # noqa: F401  registers the models on Base

    Base.metadata.create_all(bind=bind or engine)
