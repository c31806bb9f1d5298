"""
Database connection management for WMX Services.
Handles SQLAlchemy engine creation, session management, and connection verification.
"""

import os
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool

logger = logging.getLogger(__name__)


def normalize_database_url(url):
    """Handle the postgres:// vs postgresql:// URL format of hosted providers."""
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


DATABASE_URL = normalize_database_url(os.environ.get('DATABASE_URL'))

# SQLAlchemy Base for model declarations
Base = declarative_base()

# Engine and SessionLocal are initialized when needed
engine = None
SessionLocal = None


def configure_database(url):
    """
    Point the connection layer at a database URL, discarding any existing engine.
    Called by the app factory with the URL from the active config.
    """
    global DATABASE_URL, engine, SessionLocal

    if engine is not None:
        engine.dispose()
    DATABASE_URL = normalize_database_url(url)
    engine = None
    SessionLocal = None
    return get_engine()


def get_engine():
    """Get or create the SQLAlchemy engine."""
    global engine

    if engine is not None:
        return engine

    if not DATABASE_URL:
        logger.error("DATABASE_URL environment variable is not set!")
        raise RuntimeError(
            "DATABASE_URL not configured. Please set the DATABASE_URL environment variable."
        )

    try:
        if DATABASE_URL.startswith('sqlite'):
            # Single shared connection so in-memory databases survive across sessions
            engine = create_engine(
                DATABASE_URL,
                poolclass=StaticPool,
                connect_args={'check_same_thread': False},
                echo=False
            )
        else:
            engine = create_engine(
                DATABASE_URL,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,  # Verify connections before using
                pool_recycle=300,    # Recycle connections after 5 minutes
                echo=False
            )
        logger.info("Database engine created successfully")
        return engine
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}")
        raise RuntimeError(f"Failed to connect to database: {e}")


def get_session_factory():
    """Get or create the session factory."""
    global SessionLocal

    if SessionLocal is not None:
        return SessionLocal

    eng = get_engine()
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=eng)
    return SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for a unit of work. Commits on success, rolls back on error.

    Example:
        with get_db_session() as db:
            projects = db.query(Project).all()
    """
    session_factory = get_session_factory()
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection():
    """
    Verify that the database connection is working.
    Returns True if connection is successful, raises exception otherwise.
    """
    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise RuntimeError(f"Cannot connect to database: {e}")


def init_db():
    """
    Create all tables. Deployed databases are migrated with Alembic instead.
    """
    from database import models  # noqa: F401

    eng = get_engine()
    Base.metadata.create_all(bind=eng)
    logger.info("Database tables created/verified")


def drop_db():
    """Drop all tables (tests only)."""
    from database import models  # noqa: F401

    Base.metadata.drop_all(bind=get_engine())


def is_db_configured():
    """Check if DATABASE_URL is configured (without failing)."""
    return bool(DATABASE_URL)
