"""
Bounded retry for read-modify-write units of work.

Writes to a User record carry an optimistic version check (users.version), and profile
upserts rely on unique keys. A concurrent writer surfaces as StaleDataError or
IntegrityError at commit; the unit is rolled back and re-run from a fresh read.
Cancellation (asyncio.CancelledError) is not an Exception subclass and is never retried.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from fastapi import status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_retry(
    db: AsyncSession,
    unit_of_work: Callable[[], Awaitable[T]],
    *,
    label: str,
    attempts: Optional[int] = None,
) -> T:
    """Run unit_of_work (which must commit) and retry it on write conflicts.

    unit_of_work must re-read everything it modifies; after a rollback every instance
    in the session is expired.
    """
    max_attempts = attempts or settings.write_retry_attempts
    for attempt in range(1, max_attempts + 1):
        try:
            return await unit_of_work()
        except (StaleDataError, IntegrityError) as e:
            await db.rollback()
            if attempt == max_attempts:
                logger.warning("%s: giving up after %d conflicting attempts", label, attempt)
                raise ServiceError(
                    "The record was changed by another request. Please try again.",
                    status.HTTP_409_CONFLICT,
                ) from e
            logger.warning("%s: write conflict on attempt %d, retrying", label, attempt)
        except Exception:
            await db.rollback()
            raise
    raise AssertionError("unreachable")
