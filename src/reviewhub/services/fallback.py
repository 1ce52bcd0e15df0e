"""Two-tier storage reads: a joined fetch with a per-entity fallback.

Every list read in the store adapter goes through :func:`fetch_with_fallback`.
The primary callable runs a single joined select; the secondary runs one
select per entity and merges the rows in memory. Both must return the same
shape so callers never learn which tier served them.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.config import settings
from reviewhub.errors.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that mean "the store misbehaved", as opposed to domain errors
INFRASTRUCTURE_ERRORS = (SQLAlchemyError, TimeoutError, OSError)


async def with_timeout(operation: str, call: Callable[[], Awaitable[T]], timeout: float | None = None) -> T:
    """Run a single storage call under the configured timeout.

    Raises:
        StorageUnavailableError: if the call times out or the store fails.
    """
    limit = settings.storage_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(call(), limit)
    except INFRASTRUCTURE_ERRORS as exc:
        logger.error("Storage call %s failed: %s", operation, exc)
        raise StorageUnavailableError(operation, str(exc) or type(exc).__name__) from exc


async def fetch_with_fallback(
    operation: str,
    primary: Callable[[], Awaitable[T]],
    secondary: Callable[[], Awaitable[T]],
    *,
    session: AsyncSession | None = None,
    timeout: float | None = None,
) -> T:
    """Return ``primary()``, or ``secondary()`` if the primary tier fails.

    When a session is given the primary runs inside a SAVEPOINT so that a
    failed statement does not poison the surrounding transaction.

    Raises:
        StorageUnavailableError: if both tiers fail.
    """
    limit = settings.storage_timeout_seconds if timeout is None else timeout

    async def _guarded_primary() -> T:
        if session is None:
            return await primary()
        async with session.begin_nested():
            return await primary()

    try:
        return await asyncio.wait_for(_guarded_primary(), limit)
    except INFRASTRUCTURE_ERRORS as exc:
        logger.warning(
            "Joined fetch failed for %s, falling back to per-entity reads: %s",
            operation,
            str(exc) or type(exc).__name__,
        )

    try:
        return await asyncio.wait_for(secondary(), limit)
    except INFRASTRUCTURE_ERRORS as exc:
        logger.error("Per-entity fallback failed for %s: %s", operation, exc)
        raise StorageUnavailableError(operation, str(exc) or type(exc).__name__) from exc
