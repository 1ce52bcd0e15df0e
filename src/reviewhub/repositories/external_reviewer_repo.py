"""External reviewer repository."""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.models.nomination import ExternalReviewerRow
from reviewhub.repositories.base import BaseRepository


class ExternalReviewerRepository(BaseRepository[ExternalReviewerRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ExternalReviewerRow)

    async def get(self, external_reviewer_id: str) -> ExternalReviewerRow | None:
        return await self.get_by_id("external_reviewer_id", external_reviewer_id)

    async def get_many_by_id(self, external_reviewer_ids) -> dict[str, ExternalReviewerRow]:
        return await self.get_many("external_reviewer_id", external_reviewer_ids)

    async def list_by_email(self, email: str, client_id: str | None = None) -> list[ExternalReviewerRow]:
        """External reviewer records for an email, optionally within one tenant."""
        stmt = select(ExternalReviewerRow).where(
            func.lower(ExternalReviewerRow.email) == email.strip().lower()
        )
        if client_id:
            stmt = stmt.where(ExternalReviewerRow.client_id == client_id)
        stmt = stmt.order_by(ExternalReviewerRow.created_at)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_review_status(
        self,
        external_reviewer_id: str,
        expected: str | None,
        new_status: str,
    ) -> bool:
        """Conditionally move the review status; False if another writer got there first."""
        stmt = (
            update(ExternalReviewerRow)
            .where(
                ExternalReviewerRow.external_reviewer_id == external_reviewer_id,
                ExternalReviewerRow.review_status.is_not_distinct_from(expected),
            )
            .values(review_status=new_status)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
