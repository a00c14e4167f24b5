"""
Withdrawal balance manager.

Handles balance operations for withdrawal requests: deduction when a
request is created and restoration when it is rejected.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.repositories.wallet_repository import WalletRepository
from mlm_app.utils.exceptions import InsufficientBalanceError, NotFoundError


class WithdrawalBalanceManager:
    """Manages balance operations for withdrawal requests."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize withdrawal balance manager.

        Args:
            session: Database session
        """
        self.session = session
        self.wallet_repo = WalletRepository(session)

    async def get_balance(self, user_id: str) -> Decimal:
        """Current wallet balance (0 without a wallet)."""
        wallet = await self.wallet_repo.get_by_user(user_id)
        return wallet.balance if wallet else Decimal("0")

    async def deduct_balance(
        self, user_id: str, amount: Decimal, withdrawal_id: int | None = None
    ) -> None:
        """
        Deduct balance for a withdrawal in a single conditional UPDATE.

        Args:
            user_id: User ID
            amount: Amount to deduct
            withdrawal_id: Request ID for logging

        Raises:
            InsufficientBalanceError: Balance does not cover amount (nothing deducted)
        """
        if not await self.wallet_repo.debit_balance(user_id, amount):
            available = await self.get_balance(user_id)
            logger.warning(
                "Insufficient balance for deduction",
                extra={
                    "user_id": user_id,
                    "withdrawal_id": withdrawal_id,
                    "available": str(available),
                    "requested": str(amount),
                },
            )
            raise InsufficientBalanceError(
                "Insufficient balance",
                user_id=user_id,
                available=str(available),
                requested=str(amount),
            )

        logger.info(
            "Balance deducted for withdrawal",
            extra={
                "user_id": user_id,
                "withdrawal_id": withdrawal_id,
                "amount": str(amount),
            },
        )

    async def restore_balance(
        self, user_id: str, amount: Decimal, withdrawal_id: int | None = None
    ) -> None:
        """
        Restore balance to user account (for rejected withdrawals).

        Args:
            user_id: User ID
            amount: Amount to restore
            withdrawal_id: Request ID for logging

        Raises:
            NotFoundError: Wallet does not exist
        """
        if not await self.wallet_repo.credit(user_id, balance=amount):
            logger.error(
                "Wallet not found for balance restoration",
                extra={"user_id": user_id, "withdrawal_id": withdrawal_id},
            )
            raise NotFoundError("Wallet not found", user_id=user_id)

        logger.info(
            "Balance restored for withdrawal",
            extra={
                "user_id": user_id,
                "withdrawal_id": withdrawal_id,
                "amount": str(amount),
            },
        )
