"""Review response session and response repositories."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.models.response import ReviewResponseRow, ReviewResponseSessionRow
from reviewhub.repositories.base import BaseRepository


class ResponseSessionRepository(BaseRepository[ReviewResponseSessionRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ReviewResponseSessionRow)

    async def get_for_nomination(self, nomination_id: str) -> ReviewResponseSessionRow | None:
        stmt = select(ReviewResponseSessionRow).where(ReviewResponseSessionRow.nomination_id == nomination_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def answered_count(self, session_id: str) -> int:
        stmt = select(func.count(ReviewResponseRow.response_id)).where(
            ReviewResponseRow.session_id == session_id,
            ReviewResponseRow.is_answered.is_(True),
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())


class ResponseRepository(BaseRepository[ReviewResponseRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ReviewResponseRow)

    async def get_answer(self, session_id: str, question_id: str) -> ReviewResponseRow | None:
        stmt = select(ReviewResponseRow).where(
            ReviewResponseRow.session_id == session_id,
            ReviewResponseRow.question_id == question_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

