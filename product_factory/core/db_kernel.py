"""Short-lived session helpers with error translation and transient retries.

Process-level collaborators (provider key pool, cost ledger) do not share the
stage session; they run each read/write in its own session through
``db_read`` / ``db_write``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from time import monotonic
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from product_factory.core.database import get_session_context

logger = logging.getLogger(__name__)

_ResultT = TypeVar("_ResultT")

_CONNECTION_ERROR_MARKERS = (
    "connection is closed",
    "underlying connection is closed",
    "server closed the connection unexpectedly",
    "connection was closed",
)

UNIQUE_VIOLATION_SQLSTATE = "23505"


class DbKernelError(RuntimeError):
    """Base error for DB kernel operations."""


class TransientDbError(DbKernelError):
    """Transient DB failure that can usually be retried."""


class ConflictError(DbKernelError):
    """Unique-key conflict; the row was already written by someone else."""


class PermanentDbError(DbKernelError):
    """Non-transient DB failure."""


def is_transient_connection_error(exc: Exception) -> bool:
    """Return True when an exception likely came from a dropped DB connection."""
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, (InterfaceError, OperationalError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True

    lowered = str(exc).lower()
    return any(marker in lowered for marker in _CONNECTION_ERROR_MARKERS)


def is_unique_violation(exc: IntegrityError) -> bool:
    """Return True for duplicate-key errors; CHECK and NOT NULL violations are not conflicts."""
    orig = exc.orig
    for source in (orig, getattr(orig, "__cause__", None)):
        code = getattr(source, "sqlstate", None) or getattr(source, "pgcode", None)
        if code:
            return code == UNIQUE_VIOLATION_SQLSTATE
    lowered = str(orig).lower()
    return "duplicate key" in lowered or "unique constraint" in lowered


def translate_db_error(exc: Exception) -> DbKernelError:
    if isinstance(exc, DbKernelError):
        return exc
    if isinstance(exc, IntegrityError):
        if is_unique_violation(exc):
            return ConflictError(str(exc))
        return PermanentDbError(str(exc))
    if is_transient_connection_error(exc):
        return TransientDbError(str(exc))
    return PermanentDbError(str(exc))


async def db_read(
    fn: Callable[[AsyncSession], Awaitable[_ResultT]],
    *,
    operation_name: str,
) -> _ResultT:
    """Execute a read operation in a short-lived session."""
    started = monotonic()
    try:
        async with get_session_context(commit_on_exit=False) as session:
            return await fn(session)
    except Exception as exc:
        translated = translate_db_error(exc)
        logger.warning(
            "DB read operation failed",
            extra={
                "operation": operation_name,
                "duration_ms": round((monotonic() - started) * 1000, 2),
                "failure_class": type(translated).__name__,
            },
        )
        raise translated from exc


async def db_write(
    fn: Callable[[AsyncSession], Awaitable[_ResultT]],
    *,
    operation_name: str,
    attempts: int = 3,
    base_delay_seconds: float = 0.2,
) -> _ResultT:
    """Execute a write in a short-lived session, retrying transient failures.

    Conflicts are never retried.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    started = monotonic()
    for attempt in range(1, attempts + 1):
        try:
            async with get_session_context(commit_on_exit=False) as session:
                result = await fn(session)
                await session.commit()
            return result
        except Exception as exc:
            translated = translate_db_error(exc)
            will_retry = isinstance(translated, TransientDbError) and attempt < attempts
            logger.warning(
                "DB write operation failed",
                extra={
                    "operation": operation_name,
                    "duration_ms": round((monotonic() - started) * 1000, 2),
                    "failure_class": type(translated).__name__,
                    "attempt": attempt,
                    "max_attempts": attempts,
                    "will_retry": will_retry,
                },
            )
            if not will_retry:
                raise translated from exc
            await asyncio.sleep(base_delay_seconds * attempt)

    raise RuntimeError(f"DB write retry loop exhausted unexpectedly: {operation_name}")
