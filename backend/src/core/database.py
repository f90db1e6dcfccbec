# pyright: reportMissingTypeStubs=false
"""
Database configuration and session management.

This module sets up SQLAlchemy database connection, session management,
and provides dependency injection for database sessions in FastAPI routes.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from fastapi import HTTPException
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from core.config import DATABASE_URL
from core.constants import DB_POOL_RECYCLE_SECONDS
from core.exceptions import BookingEngineError

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> Dict[str, Any]:
    """Engine options for the configured backend."""
    kwargs: Dict[str, Any] = {
        "pool_pre_ping": True,  # Verify connections before use
        "echo": False,
        "future": True,
    }
    if url.startswith("sqlite"):
        # Scheduler jobs run in worker threads
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_recycle"] = DB_POOL_RECYCLE_SECONDS
    return kwargs


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

# Create configured SessionLocal class
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Don't expire objects after commit
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


@event.listens_for(Base, "before_insert", propagate=True)  # type: ignore
def receive_before_insert(mapper, connection, target):  # type: ignore
    """Set created_at and updated_at on insert (UTC)."""
    # Import here to avoid circular import
    from utils.datetime_utils import utc_now
    now = utc_now()
    for column_name in ("created_at", "updated_at"):
        if column_name in mapper.columns and getattr(target, column_name, None) is None:  # type: ignore
            setattr(target, column_name, now)


@event.listens_for(Base, "before_update", propagate=True)  # type: ignore
def receive_before_update(mapper, connection, target):  # type: ignore
    """Set updated_at on update (UTC)."""
    from utils.datetime_utils import utc_now
    if "updated_at" in mapper.columns:  # type: ignore
        setattr(target, "updated_at", utc_now())


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency to provide database sessions.

    Yields a database session that is automatically closed after the request.
    Handles cleanup even if an exception occurs during request processing.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.exception(f"Database error: {e}")
        db.rollback()
        raise
    except (HTTPException, BookingEngineError):
        # Expected outcomes such as 404 or 409, mapped to responses by the API layer
        db.rollback()
        raise
    except Exception as e:
        logger.exception(f"Unexpected error in database session: {e}")
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI dependency injection.

    Used by scheduler jobs, scripts and tests that need manual session
    management.

    Example:
        ```python
        with get_db_context() as db:
            BookingService.expire_pending_bookings(db)
        ```
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception(f"Database transaction failed: {e}")
        raise
    finally:
        db.close()
