"""
SpaceShare Backend — Consistency Coordinator
==============================================

What:  Runs multi-record writes as one all-or-nothing transaction.
Who:   ListingService.create / ListingService.delete, which must change the
       listing row and the owner's back-reference row together.
How:   begin → work(session) → commit. On any failure the transaction is
       rolled back, so no listing exists without its owner reference and no
       reference points to a deleted listing.

Failure Translation:
    SpaceShareError raised inside work  → rolled back, propagated unchanged
    OperationalError (deadlock, serialization failure, dropped connection)
                                        → rolled back, retried with tenacity
    anything else                       → rolled back, DatabaseError (500)
                                          with a generic message; the
                                          underlying error is logged, never returned

Retry Strategy:
    Exponential backoff with jitter between attempts. `work` runs again from
    scratch on each attempt, so it must re-read whatever it needs instead of
    reusing ORM objects loaded before the rollback.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from spaceshare.config import Settings, settings
from spaceshare.exceptions import DatabaseError, SpaceShareError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Work = Callable[[AsyncSession], Awaitable[T]]


class ConsistencyCoordinator:
    """Wraps multi-record mutations in a retried, all-or-nothing transaction."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(self.config.retry_max_attempts),
            wait=wait_exponential(
                multiplier=self.config.retry_min_wait,
                max=self.config.retry_max_wait,
            )
            + wait_random(0, self.config.retry_min_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def run_atomic(self, db: AsyncSession, work: Work, operation: str) -> T:
        """
        Execute `work` and commit, or roll back everything it did.

        Args:
            db: Session for the current request. Anything already pending in
                it becomes part of this transaction.
            work: Coroutine function performing the writes.
            operation: Short description for logs and the error message,
                e.g. "create place".

        Returns:
            Whatever `work` returned.

        Raises:
            SpaceShareError: domain errors raised by `work`
            DatabaseError: any other failure
        """
        try:
            async for attempt in self._retrying():
                with attempt:
                    try:
                        result = await work(db)
                        await db.commit()
                    except BaseException:
                        await db.rollback()
                        raise
            return result
        except SpaceShareError:
            raise
        except Exception as e:
            logger.error(
                "Transaction for '%s' rolled back: %s",
                operation,
                str(e),
                exc_info=True,
            )
            raise DatabaseError(
                message=f"Sorry, something went wrong, could not {operation}",
                context={"operation": operation, "error_type": type(e).__name__},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
coordinator = ConsistencyCoordinator(settings)
