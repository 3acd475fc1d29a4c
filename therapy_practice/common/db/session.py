"""
Database Session Management

This module provides the transaction scope used by every service and a
portable "insert, ignore duplicates" helper for upserts keyed by a unique
constraint.
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from therapy_practice.common.error_handling import DatabaseError, PracticeError
from therapy_practice.common.logger import app_logger

# Set up logging
logger = app_logger.getChild("db.session")


@contextmanager
def transaction(
    session: Session,
    on_integrity_error: Optional[Callable[[IntegrityError], PracticeError]] = None
) -> Iterator[Session]:
    """
    Run a block of work as one transaction.

    Commits when the block succeeds and rolls back on any exception, so no
    partial writes survive a failed operation.

    Args:
        session: The session to use
        on_integrity_error: Maps a constraint violation to a domain error;
            without it the IntegrityError propagates unchanged

    Yields:
        The same session

    Raises:
        DatabaseError: For store failures other than constraint violations
    """
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Integrity error, transaction rolled back: {e.orig}")
        if on_integrity_error is not None:
            raise on_integrity_error(e) from e
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database session error: {e}")
        raise DatabaseError("Database operation failed", cause=e) from e
    except Exception:
        session.rollback()
        raise


def insert_ignore_conflict(
    session: Session,
    model: Any,
    rows: List[Dict[str, Any]],
    index_elements: Sequence[str]
) -> None:
    """
    Insert rows, silently skipping those that collide on ``index_elements``.

    Uses ``ON CONFLICT DO NOTHING`` on PostgreSQL and SQLite; other backends
    fall back to inserting only the keys that are not present yet.

    Args:
        session: Session bound to the target database
        model: Mapped class to insert into
        rows: Column values per row
        index_elements: Columns of the unique constraint the rows are keyed by
    """
    if not rows:
        return

    dialect = session.get_bind().dialect.name

    if dialect == "postgresql":
        stmt = postgresql.insert(model).values(rows).on_conflict_do_nothing(
            index_elements=list(index_elements)
        )
        session.execute(stmt)
        return

    if dialect == "sqlite":
        stmt = sqlite.insert(model).values(rows).on_conflict_do_nothing(
            index_elements=list(index_elements)
        )
        session.execute(stmt)
        return

    logger.debug(f"No native upsert for dialect {dialect}, inserting missing keys only")
    for row in rows:
        filters = [getattr(model, column) == row[column] for column in index_elements]
        exists = session.query(model).filter(*filters).first()
        if exists is None:
            session.execute(insert(model).values(**row))
