"""
Withdrawal lifecycle handling module.

Handles admin approval and rejection of pending withdrawal requests.
"""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.enums import TransactionStatus, TransactionType, WithdrawalStatus
from mlm_app.models.withdrawal_request import WithdrawalRequest
from mlm_app.repositories.transaction_repository import TransactionRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.repositories.wallet_repository import WalletRepository
from mlm_app.repositories.withdrawal_repository import WithdrawalRepository
from mlm_app.services.notification import NotificationService
from mlm_app.services.user.core import require_admin
from mlm_app.services.withdrawal.withdrawal_balance_manager import (
    WithdrawalBalanceManager,
)
from mlm_app.utils.cache import CacheService
from mlm_app.utils.db_decorators import with_rollback_on_error
from mlm_app.utils.exceptions import InvalidStateTransitionError, NotFoundError


class WithdrawalLifecycleHandler:
    """Handles withdrawal lifecycle operations."""

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheService | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        """
        Initialize withdrawal lifecycle handler.

        Args:
            session: Database session
            cache: Cache service for transaction list invalidation
            notifier: Notification service (None = no notifications)
        """
        self.session = session
        self.cache = cache
        self.notifier = notifier
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.withdrawal_repo = WithdrawalRepository(session)
        self.transaction_repo = TransactionRepository(session)
        self.balance_manager = WithdrawalBalanceManager(session)

    @with_rollback_on_error
    async def approve_withdrawal(
        self,
        request_id: int,
        admin_id: str,
        external_transaction_id: str | None = None,
        remarks: str | None = None,
    ) -> WithdrawalRequest:
        """
        Approve a pending withdrawal once the payout was sent.

        The balance stays debited; total_withdrawals grows by the amount.

        Args:
            request_id: Withdrawal request ID
            admin_id: Acting administrator
            external_transaction_id: Bank/UPI reference of the payout
            remarks: Optional note

        Returns:
            Approved request

        Raises:
            PermissionDeniedError: Actor is not an admin
            NotFoundError: Request does not exist
            InvalidStateTransitionError: Request is not pending
        """
        await require_admin(self.user_repo, admin_id)
        request = await self._get_pending_request(request_id)
        now = datetime.now(UTC)

        await self.wallet_repo.credit(request.user_id, total_withdrawals=request.amount)

        transaction = await self.transaction_repo.get_by_withdrawal_request(request.id)
        if transaction is None:
            logger.warning(
                "Withdrawal ledger entry missing, recording it on approval",
                extra={"withdrawal_request_id": request.id},
            )
            transaction = await self.transaction_repo.create(
                user_id=request.user_id,
                type=TransactionType.WITHDRAWAL.value,
                amount=request.amount,
                description="Withdrawal",
                withdrawal_request_id=request.id,
            )
            request.transaction_id = transaction.id
        transaction.status = TransactionStatus.COMPLETED.value
        transaction.processed_at = now

        request.status = WithdrawalStatus.APPROVED.value
        request.processed_by = admin_id
        request.processed_at = now
        request.external_transaction_id = external_transaction_id
        request.remarks = remarks

        await self.session.commit()

        logger.info(
            "Withdrawal approved",
            extra={
                "withdrawal_request_id": request.id,
                "user_id": request.user_id,
                "amount": str(request.amount),
                "admin_id": admin_id,
                "external_transaction_id": external_transaction_id,
            },
        )
        await self._after_commit(request)
        return request

    @with_rollback_on_error
    async def reject_withdrawal(
        self, request_id: int, admin_id: str, remarks: str | None = None
    ) -> WithdrawalRequest:
        """
        Reject a pending withdrawal and refund the wallet.

        The withdrawal ledger entry fails and a completed refund entry is
        appended. If the refund cannot be applied nothing is marked.

        Args:
            request_id: Withdrawal request ID
            admin_id: Acting administrator
            remarks: Reason shown to the user

        Returns:
            Rejected request

        Raises:
            PermissionDeniedError: Actor is not an admin
            NotFoundError: Request or wallet does not exist
            InvalidStateTransitionError: Request is not pending
        """
        await require_admin(self.user_repo, admin_id)
        request = await self._get_pending_request(request_id)
        now = datetime.now(UTC)

        await self.balance_manager.restore_balance(
            request.user_id, request.amount, request.id
        )

        transaction = await self.transaction_repo.get_by_withdrawal_request(request.id)
        if transaction is not None:
            transaction.status = TransactionStatus.FAILED.value
            transaction.processed_at = now

        await self.transaction_repo.create(
            user_id=request.user_id,
            type=TransactionType.REFUND.value,
            amount=request.amount,
            status=TransactionStatus.COMPLETED.value,
            description=f"Refund of rejected withdrawal #{request.id}",
            withdrawal_request_id=request.id,
            processed_at=now,
        )

        request.status = WithdrawalStatus.REJECTED.value
        request.processed_by = admin_id
        request.processed_at = now
        request.remarks = remarks

        await self.session.commit()

        logger.info(
            "Withdrawal rejected",
            extra={
                "withdrawal_request_id": request.id,
                "user_id": request.user_id,
                "amount": str(request.amount),
                "admin_id": admin_id,
                "remarks": remarks,
            },
        )
        await self._after_commit(request)
        return request

    async def _get_pending_request(self, request_id: int) -> WithdrawalRequest:
        request = await self.withdrawal_repo.get_for_update(request_id)
        if request is None:
            raise NotFoundError(
                "Withdrawal request not found", withdrawal_request_id=request_id
            )
        if not request.is_pending:
            raise InvalidStateTransitionError(
                f"Withdrawal request is already {request.status}",
                withdrawal_request_id=request_id,
                status=request.status,
            )
        return request

    async def _after_commit(self, request: WithdrawalRequest) -> None:
        """Drop cached history and notify; never raises."""
        if self.cache is not None:
            await self.cache.invalidate_transactions([request.user_id])
        if self.notifier is None:
            return
        try:
            await self.notifier.notify_withdrawal(request)
        except Exception as e:
            logger.error(f"Withdrawal notification failed: {e}")
