"""Repository for internal members (client users)."""

from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.models.tenant import ClientUserRow
from reviewhub.repositories.base import BaseRepository


class ClientUserRepository(BaseRepository[ClientUserRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ClientUserRow)

    async def get(self, user_id: str) -> ClientUserRow | None:
        return await self.get_by_id("user_id", user_id)

    async def get_many_by_id(self, user_ids) -> dict[str, ClientUserRow]:
        return await self.get_many("user_id", user_ids)
