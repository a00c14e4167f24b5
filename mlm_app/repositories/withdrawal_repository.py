"""
Withdrawal repository.

Data access layer for WithdrawalRequest model.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.enums import WithdrawalStatus
from mlm_app.models.user import User
from mlm_app.models.withdrawal_request import WithdrawalRequest
from mlm_app.repositories.base import BaseRepository


class WithdrawalRepository(BaseRepository[WithdrawalRequest]):
    """Withdrawal request repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize withdrawal repository."""
        super().__init__(WithdrawalRequest, session)

    async def get_by_user(self, user_id: str) -> list[WithdrawalRequest]:
        """
        Get a user's requests, newest first.

        Args:
            user_id: User ID

        Returns:
            List of withdrawal requests
        """
        stmt = (
            select(WithdrawalRequest)
            .where(WithdrawalRequest.user_id == user_id)
            .order_by(
                WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc()
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_with_users(
        self,
        status: WithdrawalStatus | None = None,
        limit: int | None = None,
    ) -> list[tuple[WithdrawalRequest, str, str]]:
        """
        List requests newest first with the requester's name and email.

        Args:
            status: Optional status filter
            limit: Max number of results

        Returns:
            List of (request, user name, user email)
        """
        stmt = (
            select(WithdrawalRequest, User.name, User.email)
            .join(User, User.id == WithdrawalRequest.user_id)
            .order_by(
                WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc()
            )
        )
        if status is not None:
            stmt = stmt.where(WithdrawalRequest.status == status.value)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [(row[0], row[1], row[2]) for row in result.all()]

    async def sum_amount(self, status: WithdrawalStatus) -> Decimal:
        """Total amount of requests in a status."""
        stmt = select(func.coalesce(func.sum(WithdrawalRequest.amount), 0)).where(
            WithdrawalRequest.status == status.value
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))
