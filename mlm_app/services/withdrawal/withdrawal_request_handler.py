"""
Withdrawal request handling module.

Validates a withdrawal, debits the wallet immediately and records the
pending request with its ledger entry.
"""

import re
from decimal import Decimal

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.enums import TransactionStatus, TransactionType, WithdrawalStatus
from mlm_app.models.withdrawal_request import WithdrawalRequest
from mlm_app.repositories.system_settings_repository import SystemSettingsRepository
from mlm_app.repositories.transaction_repository import TransactionRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.repositories.withdrawal_repository import WithdrawalRepository
from mlm_app.services.notification import NotificationService
from mlm_app.services.withdrawal.withdrawal_balance_manager import (
    WithdrawalBalanceManager,
)
from mlm_app.utils.cache import CacheService
from mlm_app.utils.db_decorators import with_rollback_on_error
from mlm_app.utils.exceptions import (
    AmountBelowMinimumError,
    NotFoundError,
    ValidationError,
)
from mlm_app.utils.money import quantize_money, to_decimal

IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")


class BankDetails(BaseModel):
    """Destination bank account of a withdrawal."""

    account_name: str = Field(min_length=1, max_length=255)
    account_number: str = Field(min_length=4, max_length=64)
    ifsc_code: str
    bank_name: str = Field(min_length=1, max_length=255)

    @field_validator("account_name", "bank_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("account_number")
    @classmethod
    def validate_account_number(cls, v: str) -> str:
        v = v.replace(" ", "")
        if not v.isdigit():
            raise ValueError("account number must contain digits only")
        return v

    @field_validator("ifsc_code")
    @classmethod
    def validate_ifsc(cls, v: str) -> str:
        v = v.strip().upper()
        if not IFSC_PATTERN.match(v):
            raise ValueError(f"invalid IFSC code: {v}")
        return v


class WithdrawalRequestHandler:
    """Handles withdrawal request creation."""

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheService | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        """
        Initialize withdrawal request handler.

        Args:
            session: Database session
            cache: Cache service for transaction list invalidation
            notifier: Notification service (None = no notifications)
        """
        self.session = session
        self.cache = cache
        self.notifier = notifier
        self.user_repo = UserRepository(session)
        self.withdrawal_repo = WithdrawalRepository(session)
        self.transaction_repo = TransactionRepository(session)
        self.settings_repo = SystemSettingsRepository(session)
        self.balance_manager = WithdrawalBalanceManager(session)

    async def get_min_withdrawal_amount(self) -> Decimal:
        """Get minimum withdrawal amount from system settings."""
        system_settings = await self.settings_repo.get_or_create()
        return system_settings.min_withdrawal_amount

    @with_rollback_on_error
    async def create_request(
        self,
        user_id: str,
        amount: Decimal | int | str,
        bank_details: BankDetails,
    ) -> WithdrawalRequest:
        """
        Create a withdrawal request and debit the wallet right away.

        Args:
            user_id: Requesting user
            amount: Amount to withdraw
            bank_details: Destination account

        Returns:
            Pending withdrawal request

        Raises:
            AmountBelowMinimumError: Amount below min_withdrawal_amount
            ValidationError: Amount above max_withdrawal_amount, or user inactive
            NotFoundError: User does not exist
            InsufficientBalanceError: Balance does not cover amount
        """
        amount = quantize_money(to_decimal(amount))
        system_settings = await self.settings_repo.get_or_create()

        if amount <= 0 or amount < system_settings.min_withdrawal_amount:
            raise AmountBelowMinimumError(
                f"Minimum withdrawal is {system_settings.min_withdrawal_amount}",
                amount=str(amount),
                minimum=str(system_settings.min_withdrawal_amount),
            )
        maximum = system_settings.max_withdrawal_amount
        if maximum is not None and amount > maximum:
            raise ValidationError(
                f"Maximum withdrawal is {maximum}",
                amount=str(amount),
                maximum=str(maximum),
            )

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        if not user.is_active:
            raise ValidationError("User account is not active", user_id=user_id)

        await self.balance_manager.deduct_balance(user_id, amount)

        request = await self.withdrawal_repo.create(
            user_id=user_id,
            amount=amount,
            account_name=bank_details.account_name,
            account_number=bank_details.account_number,
            ifsc_code=bank_details.ifsc_code,
            bank_name=bank_details.bank_name,
            status=WithdrawalStatus.PENDING.value,
        )
        transaction = await self.transaction_repo.create(
            user_id=user_id,
            type=TransactionType.WITHDRAWAL.value,
            amount=amount,
            status=TransactionStatus.PENDING.value,
            description=f"Withdrawal to {bank_details.bank_name} ({bank_details.account_number[-4:]})",
            withdrawal_request_id=request.id,
        )
        request.transaction_id = transaction.id

        await self.session.commit()

        if self.cache is not None:
            await self.cache.invalidate_transactions([user_id])

        logger.info(
            "Withdrawal requested",
            extra={
                "user_id": user_id,
                "withdrawal_request_id": request.id,
                "transaction_id": transaction.id,
                "amount": str(amount),
            },
        )

        if self.notifier is not None:
            try:
                await self.notifier.notify_withdrawal(request)
            except Exception as e:
                logger.error(f"Withdrawal notification failed: {e}")

        return request
