"""
Transaction runner for mutating operations.

Each public service operation is one call to `run_atomic`: a fresh
session, one transaction, commit on success, rollback on any exception.
Conflicts (serialization failures, deadlocks, unique-constraint races)
are retried with a new session up to a bounded count.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from binderkeep.config import settings
from binderkeep.models.failure import ConflictError, KnownError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATEs that mean "try again"
_SERIALIZATION_FAILURE = "40001"
_DEADLOCK_DETECTED = "40P01"
_UNIQUE_VIOLATION = "23505"

_RETRYABLE_STATES = frozenset({_SERIALIZATION_FAILURE, _DEADLOCK_DETECTED, _UNIQUE_VIOLATION})


def _sqlstate(error: DBAPIError) -> str | None:
    orig = error.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def as_conflict(error: DBAPIError) -> ConflictError | None:
    """
    Translate a driver error into a ConflictError when it is safe to retry.

    Returns None for errors that would fail the same way on a retry.
    """
    state = _sqlstate(error)
    if state in _RETRYABLE_STATES:
        return ConflictError(detail=f"sqlstate {state}")
    # SQLite reports unique violations without a SQLSTATE
    if state is None and isinstance(error, IntegrityError):
        if "unique" in str(error.orig).lower():
            return ConflictError(detail=str(error.orig))
    # A writer that outlived the SQLite busy timeout
    if state is None and isinstance(error, OperationalError):
        if "database is locked" in str(error.orig).lower():
            return ConflictError(detail=str(error.orig))
    return None


async def _run_once(
    session_factory: async_sessionmaker[AsyncSession],
    operation: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    try:
        async with session_factory() as session, session.begin():
            return await operation(session)
    except DBAPIError as e:
        conflict = as_conflict(e)
        if conflict is None:
            raise
        raise conflict from e


async def run_atomic(
    session_factory: async_sessionmaker[AsyncSession],
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    retries: int | None = None,
) -> T:
    """
    Run `operation` in its own transaction and return its result.

    Args:
        session_factory: Factory producing a fresh AsyncSession per attempt
        operation: Coroutine function receiving the session
        retries: Extra attempts after a conflict (defaults to settings)

    Raises:
        ConflictError: Still conflicting after the last retry
        KnownError: Any other domain failure, never retried
    """
    max_retries = settings.max_transaction_retries if retries is None else retries
    attempt = 0
    while True:
        try:
            return await _run_once(session_factory, operation)
        except KnownError as e:
            if not e.retryable or attempt >= max_retries:
                raise
            attempt += 1
            logger.warning(
                "Transaction conflict (%s), retrying %d/%d", e.detail, attempt, max_retries
            )
