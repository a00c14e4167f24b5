"""
Wallet repository.

Data access layer for Wallet model.
"""

from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.wallet import Wallet
from mlm_app.repositories.base import BaseRepository


class WalletRepository(BaseRepository[Wallet]):
    """Wallet repository with balance operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize wallet repository."""
        super().__init__(Wallet, session)

    async def get_by_user(self, user_id: str) -> Wallet | None:
        """Get a user's wallet."""
        return await self.get_by_id(user_id)

    async def credit(self, user_id: str, **deltas: Decimal) -> bool:
        """
        Atomically add to wallet columns (balance, total_income, ...).

        Returns:
            True if the wallet exists
        """
        return await self.increment(user_id, **deltas)

    async def debit_balance(self, user_id: str, amount: Decimal) -> bool:
        """
        Atomically subtract from balance only if it covers the amount.

        UPDATE wallets SET balance = balance - :amount
        WHERE user_id = :id AND balance >= :amount

        Returns:
            True if debited, False if the balance was insufficient
            (or the wallet does not exist); nothing changes then
        """
        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        debited = result.rowcount > 0

        if debited:
            key = self.session.identity_key(Wallet, user_id)
            wallet = self.session.identity_map.get(key)
            if wallet is not None:
                await self.session.refresh(wallet, attribute_names=["balance"])

        return debited
