"""
Operation Boundary
==================

Every service operation runs through ``run_operation``:

1. The operation body validates, writes and returns a success result.
2. The transaction is committed.
3. Callbacks registered with ``OperationContext.after_commit`` run
   (notifications). Their failures are logged, never returned.

Anticipated failures (``OperationError``) roll back and become a failure
result with the matching ``ErrorKind``. A write that lost a race (stale
optimistic-lock version, lock timeout, serialization failure or deadlock)
is retried from scratch, so the retry sees the winner's committed state.
Anything else rolls back, is logged with the operation name and entity
ids, and becomes ``internal_error``.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Type, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from carnivals.errors import ErrorKind, OperationError
from carnivals.schemas import OperationResult

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=OperationResult)

AfterCommit = Callable[[], Awaitable[object]]

# serialization_failure, deadlock_detected, lock_not_available
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}

RETRY_BACKOFF_SECONDS = 0.05


def is_write_conflict(exc: BaseException) -> bool:
    """Whether ``exc`` means another transaction won a race for the same rows."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        if code in CONFLICT_SQLSTATES:
            return True
        # SQLite reports a writer holding the database past the busy timeout
        return "database is locked" in str(exc.orig)
    return False


class OperationContext:
    """Per-attempt state handed to an operation body."""

    def __init__(self):
        self._after_commit: List[AfterCommit] = []

    def after_commit(self, callback: AfterCommit) -> None:
        self._after_commit.append(callback)

    @property
    def callbacks(self) -> List[AfterCommit]:
        return list(self._after_commit)


def _describe(context: dict) -> str:
    return " ".join(f"{key}={value}" for key, value in context.items())


async def run_after_commit(operation: str, callbacks: List[AfterCommit]) -> None:
    """Run post-commit side effects, logging and swallowing their failures."""
    for callback in callbacks:
        try:
            await callback()
        except Exception:
            logger.warning(f"Post-commit side effect of {operation} failed", exc_info=True)


async def run_operation(
    db: AsyncSession,
    operation: str,
    result_cls: Type[ResultT],
    body: Callable[[OperationContext], Awaitable[ResultT]],
    *,
    retries: int = 2,
    **context,
) -> ResultT:
    attempt = 0
    while True:
        ctx = OperationContext()
        try:
            result = await body(ctx)
            await db.commit()
        except OperationError as e:
            await db.rollback()
            logger.info(f"{operation} rejected ({e.kind.value}): {e.message} [{_describe(context)}]")
            return result_cls.failure(e.kind, e.message)
        except Exception as e:
            await db.rollback()
            if is_write_conflict(e):
                if attempt < retries:
                    attempt += 1
                    logger.warning(
                        f"{operation} hit a concurrent update, retrying ({attempt}/{retries}) "
                        f"[{_describe(context)}]"
                    )
                    await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
                    continue
                logger.exception(f"{operation} failed after {retries} retries [{_describe(context)}]")
                return result_cls.failure(
                    ErrorKind.INTERNAL_ERROR,
                    "The record was changed by another request. Please try again.",
                )
            logger.exception(f"{operation} failed [{_describe(context)}]")
            return result_cls.failure(
                ErrorKind.INTERNAL_ERROR,
                f"An unexpected error occurred during {operation.replace('_', ' ')}",
            )

        logger.info(f"{operation} succeeded [{_describe(context)}]")
        await run_after_commit(operation, ctx.callbacks)
        return result
