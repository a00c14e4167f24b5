"""
Transaction repository.

Data access layer for Transaction model.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.enums import COMMISSION_TYPES, TransactionStatus, TransactionType
from mlm_app.models.transaction import Transaction
from mlm_app.models.user import User
from mlm_app.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Transaction repository with ledger queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize transaction repository."""
        super().__init__(Transaction, session)

    async def get_by_user(
        self, user_id: str, limit: int | None = None
    ) -> list[Transaction]:
        """
        Get user transactions, newest first.

        Args:
            user_id: User ID
            limit: Max number of results

        Returns:
            List of transactions
        """
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_gateway_order(self, order_id: str) -> Transaction | None:
        """Get the deposit created for a gateway order."""
        return await self.get_by(gateway_order_id=order_id)

    async def get_by_withdrawal_request(
        self,
        request_id: int,
        tx_type: TransactionType = TransactionType.WITHDRAWAL,
    ) -> Transaction | None:
        """Get the ledger entry of a given type linked to a withdrawal request."""
        stmt = (
            select(Transaction)
            .where(
                Transaction.withdrawal_request_id == request_id,
                Transaction.type == tx_type.value,
            )
            .order_by(Transaction.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_source_transaction(
        self, source_transaction_id: int
    ) -> list[Transaction]:
        """Get commission credits produced by one deposit."""
        return await self.find_by(source_transaction_id=source_transaction_id)

    async def sum_amount(
        self,
        types: tuple[TransactionType, ...],
        status: TransactionStatus = TransactionStatus.COMPLETED,
    ) -> Decimal:
        """
        Sum amounts of transactions of the given types and status.

        Returns:
            Total (0 when nothing matches)
        """
        stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.type.in_([t.value for t in types]),
            Transaction.status == status.value,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    async def sum_commissions(self) -> Decimal:
        """Total of every completed commission credit."""
        return await self.sum_amount(COMMISSION_TYPES)

    async def count_since(self, since: datetime) -> int:
        """Count transactions created at or after a moment."""
        stmt = select(func.count(Transaction.id)).where(
            Transaction.created_at >= since
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def find_recent_with_users(
        self, tx_type: TransactionType, limit: int
    ) -> list[tuple[Transaction, str]]:
        """
        Latest transactions of one type with the owner's name.

        Returns:
            List of (transaction, user name)
        """
        stmt = (
            select(Transaction, User.name)
            .join(User, User.id == Transaction.user_id)
            .where(Transaction.type == tx_type.value)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]
