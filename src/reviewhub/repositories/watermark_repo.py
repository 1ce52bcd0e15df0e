"""Notification watermark repository."""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.models.watermark import NotificationWatermarkRow
from reviewhub.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class WatermarkRepository(BaseRepository[NotificationWatermarkRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, NotificationWatermarkRow)

    async def get(self, user_id: str) -> NotificationWatermarkRow | None:
        stmt = (
            select(NotificationWatermarkRow)
            .where(NotificationWatermarkRow.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str, now: datetime) -> NotificationWatermarkRow:
        """Existing watermark, or a fresh one whose session starts at ``now``.

        The insert runs in a SAVEPOINT; if another session created the row
        first, the savepoint is rolled back and that row is returned.
        """
        row = await self.get(user_id)
        if row is not None:
            return row
        try:
            async with self.session.begin_nested():
                return await self.create(user_id=user_id, session_start=now, last_checked=None)
        except IntegrityError:
            logger.info("Watermark for %s created concurrently, re-reading", user_id)
        return await self.get(user_id)

    async def set_last_checked(self, user_id: str, now: datetime) -> NotificationWatermarkRow:
        await self.get_or_create(user_id, now)
        await self.session.execute(
            update(NotificationWatermarkRow)
            .where(NotificationWatermarkRow.user_id == user_id)
            .values(last_checked=now)
            .execution_options(synchronize_session=False)
        )
        return await self.get(user_id)

    async def start_session(self, user_id: str, now: datetime) -> NotificationWatermarkRow:
        """Begin a new login session: ``session_start = now`` and no last check."""
        row = await self.get_or_create(user_id, now)
        return await self.update(row, session_start=now, last_checked=None)
