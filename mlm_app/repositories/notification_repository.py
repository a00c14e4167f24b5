"""
Notification repository.

Data access layer for in-app Notification model.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.notification import Notification
from mlm_app.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Notification repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize notification repository."""
        super().__init__(Notification, session)

    async def get_by_user(
        self, user_id: str, unread_only: bool = False, limit: int | None = None
    ) -> list[Notification]:
        """
        Get a user's notifications, newest first.

        Args:
            user_id: User ID
            unread_only: Only unread notifications
            limit: Max number of results

        Returns:
            List of notifications
        """
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(self, notification_id: int, user_id: str) -> bool:
        """
        Mark an unread notification of this user as read.

        Returns:
            True if it was unread and now is read
        """
        stmt = (
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
