"""
Transaction service.

User transaction history, cached per user and invalidated by every write
path that appends or changes one of the user's transactions.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.transaction import Transaction
from mlm_app.repositories.transaction_repository import TransactionRepository
from mlm_app.utils.cache import CacheService


@dataclass
class TransactionRecord:
    """Transaction as shown in a user's history."""

    id: int
    type: str
    amount: Decimal
    status: str
    description: str
    level: int | None
    source_user_id: str | None
    created_at: datetime
    processed_at: datetime | None

    @classmethod
    def from_model(cls, transaction: Transaction) -> "TransactionRecord":
        return cls(
            id=transaction.id,
            type=transaction.type,
            amount=transaction.amount,
            status=transaction.status,
            description=transaction.description,
            level=transaction.level,
            source_user_id=transaction.source_user_id,
            created_at=transaction.created_at,
            processed_at=transaction.processed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["amount"] = str(self.amount)
        data["created_at"] = self.created_at.isoformat()
        data["processed_at"] = (
            self.processed_at.isoformat() if self.processed_at else None
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransactionRecord":
        values = dict(data)
        values["amount"] = Decimal(values["amount"])
        values["created_at"] = datetime.fromisoformat(values["created_at"])
        if values.get("processed_at"):
            values["processed_at"] = datetime.fromisoformat(values["processed_at"])
        return cls(**values)


class TransactionService:
    """Transaction history queries."""

    def __init__(
        self, session: AsyncSession, cache: CacheService | None = None
    ) -> None:
        """Initialize transaction service."""
        self.session = session
        self.cache = cache
        self.transaction_repo = TransactionRepository(session)

    async def get_user_transactions(self, user_id: str) -> list[TransactionRecord]:
        """
        Get a user's transactions, newest first.

        Args:
            user_id: User ID

        Returns:
            Transaction records
        """
        key = CacheService.transactions_key(user_id)
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return [TransactionRecord.from_dict(item) for item in cached]

        transactions = await self.transaction_repo.get_by_user(user_id)
        records = [TransactionRecord.from_model(tx) for tx in transactions]

        if self.cache is not None:
            await self.cache.set(
                key,
                [record.to_dict() for record in records],
                ttl=self.cache.transaction_ttl,
            )
        return records
