"""
Deposit service.

Deposit lifecycle: pending order, gateway confirmation or admin decision,
wallet credit and commission distribution in one transaction.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.enums import TransactionStatus, TransactionType
from mlm_app.models.transaction import Transaction
from mlm_app.repositories.system_settings_repository import SystemSettingsRepository
from mlm_app.repositories.transaction_repository import TransactionRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.repositories.wallet_repository import WalletRepository
from mlm_app.services.notification import NotificationService
from mlm_app.services.payment import PaymentGatewayClient
from mlm_app.services.referral import CommissionDistributor, CommissionResult
from mlm_app.services.user.core import require_admin
from mlm_app.utils.cache import CacheService
from mlm_app.utils.db_decorators import with_rollback_on_error
from mlm_app.utils.exceptions import (
    AmountBelowMinimumError,
    InvalidStateTransitionError,
    NotFoundError,
    PaymentVerificationError,
    ValidationError,
)
from mlm_app.utils.money import quantize_money, to_decimal


@dataclass
class DepositOrder:
    """Pending deposit handed to the client for checkout."""

    transaction: Transaction
    order_id: str | None
    amount: Decimal
    currency: str | None = None


@dataclass
class DepositResult:
    """Completed deposit with the commissions it paid."""

    transaction: Transaction
    commissions: CommissionResult


class DepositService:
    """Deposit service handles the deposit lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        gateway: PaymentGatewayClient | None = None,
        cache: CacheService | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        """
        Initialize deposit service.

        Args:
            session: Async database session
            gateway: Payment gateway (None = manual deposits approved by admins)
            cache: Cache service for transaction list invalidation
            notifier: Notification service (None = no notifications)
        """
        self.session = session
        self.gateway = gateway
        self.cache = cache
        self.notifier = notifier
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.transaction_repo = TransactionRepository(session)
        self.settings_repo = SystemSettingsRepository(session)
        self.distributor = CommissionDistributor(session)

    @with_rollback_on_error
    async def create_deposit_order(
        self, user_id: str, amount: Decimal | int | str
    ) -> DepositOrder:
        """
        Open a pending deposit and, with a gateway, its checkout order.

        Args:
            user_id: Depositing user
            amount: Deposit amount

        Returns:
            DepositOrder with the pending transaction

        Raises:
            AmountBelowMinimumError: Amount below min_deposit_amount
            NotFoundError: User does not exist
            ValidationError: User is not active
            PaymentGatewayError: Gateway rejected the order
        """
        amount = quantize_money(to_decimal(amount))
        system_settings = await self.settings_repo.get_or_create()
        if amount <= 0 or amount < system_settings.min_deposit_amount:
            raise AmountBelowMinimumError(
                f"Minimum deposit is {system_settings.min_deposit_amount}",
                amount=str(amount),
                minimum=str(system_settings.min_deposit_amount),
            )

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        if not user.is_active:
            raise ValidationError("User account is not active", user_id=user_id)

        transaction = await self.transaction_repo.create(
            user_id=user_id,
            type=TransactionType.DEPOSIT.value,
            amount=amount,
            status=TransactionStatus.PENDING.value,
            description="Deposit",
        )

        order_id = None
        currency = None
        if self.gateway is not None:
            notes = {
                "user_id": user_id,
                "transaction_id": str(transaction.id),
            }
            if system_settings.admin_account_number:
                notes["admin_account_number"] = system_settings.admin_account_number
            order = await self.gateway.create_order(
                amount, receipt=f"deposit_{transaction.id}", notes=notes
            )
            order_id = order["id"]
            currency = self.gateway.currency
            transaction.gateway_order_id = order_id

        await self.session.commit()
        await self._invalidate(user_id)

        logger.info(
            "Deposit order created",
            extra={
                "user_id": user_id,
                "transaction_id": transaction.id,
                "amount": str(amount),
                "order_id": order_id,
            },
        )
        return DepositOrder(
            transaction=transaction,
            order_id=order_id,
            amount=amount,
            currency=currency,
        )

    @with_rollback_on_error
    async def complete_deposit(
        self,
        transaction_id: int,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> DepositResult:
        """
        Settle a deposit confirmed by the gateway.

        An invalid signature marks the deposit failed.

        Raises:
            NotFoundError: Transaction does not exist
            InvalidStateTransitionError: Deposit is not pending
            PaymentVerificationError: Order mismatch or bad signature
        """
        transaction = await self._get_pending_deposit(transaction_id)

        verified = (
            self.gateway is not None
            and transaction.gateway_order_id == order_id
            and self.gateway.verify_signature(order_id, payment_id, signature)
        )
        if not verified:
            transaction.status = TransactionStatus.FAILED.value
            transaction.gateway_payment_id = payment_id
            transaction.processed_at = datetime.now(UTC)
            await self.session.commit()
            await self._invalidate(transaction.user_id)

            logger.warning(
                "Deposit payment verification failed",
                extra={
                    "transaction_id": transaction_id,
                    "order_id": order_id,
                    "payment_id": payment_id,
                },
            )
            await self._notify([transaction])
            raise PaymentVerificationError(
                "Payment signature verification failed",
                transaction_id=transaction_id,
            )

        return await self._settle(transaction, payment_id=payment_id)

    async def complete_gateway_payment(
        self, order_id: str, payment_id: str, signature: str
    ) -> DepositResult:
        """
        Settle a deposit from a gateway callback that only knows the order.

        Raises:
            NotFoundError: No deposit was opened for this order
            InvalidStateTransitionError: Deposit is not pending
            PaymentVerificationError: Bad signature
        """
        transaction = await self.transaction_repo.get_by_gateway_order(order_id)
        if transaction is None or transaction.type != TransactionType.DEPOSIT.value:
            raise NotFoundError("Deposit not found", order_id=order_id)
        return await self.complete_deposit(
            transaction.id, order_id, payment_id, signature
        )

    @with_rollback_on_error
    async def approve_deposit(
        self, transaction_id: int, admin_id: str, reference: str | None = None
    ) -> DepositResult:
        """
        Settle a manual deposit after an admin checked the transfer.

        Raises:
            PermissionDeniedError: Actor is not an admin
            NotFoundError: Transaction does not exist
            InvalidStateTransitionError: Deposit is not pending
        """
        await require_admin(self.user_repo, admin_id)
        transaction = await self._get_pending_deposit(transaction_id)
        return await self._settle(transaction, payment_id=reference, admin_id=admin_id)

    @with_rollback_on_error
    async def reject_deposit(
        self, transaction_id: int, admin_id: str, remarks: str | None = None
    ) -> Transaction:
        """
        Reject a pending deposit; nothing is credited.

        Raises:
            PermissionDeniedError: Actor is not an admin
            NotFoundError: Transaction does not exist
            InvalidStateTransitionError: Deposit is not pending
        """
        await require_admin(self.user_repo, admin_id)
        transaction = await self._get_pending_deposit(transaction_id)

        transaction.status = TransactionStatus.FAILED.value
        transaction.processed_at = datetime.now(UTC)
        if remarks:
            transaction.description = f"Deposit rejected: {remarks}"
        await self.session.commit()
        await self._invalidate(transaction.user_id)

        logger.info(
            "Deposit rejected",
            extra={
                "transaction_id": transaction_id,
                "admin_id": admin_id,
                "remarks": remarks,
            },
        )
        await self._notify([transaction])
        return transaction

    async def _get_pending_deposit(self, transaction_id: int) -> Transaction:
        transaction = await self.transaction_repo.get_for_update(transaction_id)
        if transaction is None or transaction.type != TransactionType.DEPOSIT.value:
            raise NotFoundError("Deposit not found", transaction_id=transaction_id)
        if transaction.status != TransactionStatus.PENDING.value:
            raise InvalidStateTransitionError(
                f"Deposit is already {transaction.status}",
                transaction_id=transaction_id,
                status=transaction.status,
            )
        return transaction

    async def _settle(
        self,
        transaction: Transaction,
        payment_id: str | None,
        admin_id: str | None = None,
    ) -> DepositResult:
        """Complete the deposit, credit the wallet, pay commissions, commit."""
        transaction.status = TransactionStatus.COMPLETED.value
        transaction.gateway_payment_id = payment_id
        transaction.processed_at = datetime.now(UTC)

        credited = await self.wallet_repo.credit(
            transaction.user_id,
            balance=transaction.amount,
            total_invested=transaction.amount,
        )
        if not credited:
            raise NotFoundError("Wallet not found", user_id=transaction.user_id)

        commissions = await self.distributor.distribute_commissions(
            transaction.user_id,
            transaction.amount,
            source_transaction_id=transaction.id,
        )

        await self.session.commit()
        await self._invalidate(transaction.user_id, *commissions.credited_user_ids)

        logger.info(
            "Deposit completed",
            extra={
                "transaction_id": transaction.id,
                "user_id": transaction.user_id,
                "amount": str(transaction.amount),
                "approved_by": admin_id,
                "commissions_total": str(commissions.total),
            },
        )

        await self._notify_settlement(transaction)

        return DepositResult(transaction=transaction, commissions=commissions)

    async def _invalidate(self, *user_ids: str) -> None:
        if self.cache is not None:
            await self.cache.invalidate_transactions(user_ids)

    async def _notify_settlement(self, transaction: Transaction) -> None:
        """Notify the depositor and every commission recipient."""
        if self.notifier is None:
            return
        try:
            credits = await self.transaction_repo.get_by_source_transaction(
                transaction.id
            )
        except Exception as e:
            logger.error(f"Failed to load commission credits for notification: {e}")
            credits = []
        await self._notify([transaction, *credits])

    async def _notify(self, transactions: list[Transaction]) -> None:
        if self.notifier is None:
            return
        for transaction in transactions:
            try:
                await self.notifier.notify_transaction(transaction)
            except Exception as e:
                logger.error(f"Deposit notification failed: {e}")
