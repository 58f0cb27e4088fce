from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update

from lifeline.models import User

from .base import BaseRepository


class UserRepository(BaseRepository):
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Retrieves a user by their ID."""
        stmt = select(User).filter(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def touch_last_seen(self, user_id: UUID, seen_at: datetime) -> None:
        """Records activity for a user without loading the row."""
        stmt = update(User).where(User.id == user_id).values(last_seen_at=seen_at)
        await self.session.execute(stmt)

    async def count_users(self, *, seen_since: datetime | None = None) -> int:
        stmt = select(func.count()).select_from(User)
        if seen_since is not None:
            stmt = stmt.filter(User.last_seen_at >= seen_since)
        result = await self.session.execute(stmt)
        return result.scalar_one()
