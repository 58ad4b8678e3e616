from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .model import User


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> Optional[User]:
        return await self.session.get(User, user_id)
