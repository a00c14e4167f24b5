"""
Withdrawal query service.

Read paths for users and administrators.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.enums import WithdrawalStatus
from mlm_app.models.withdrawal_request import WithdrawalRequest
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.repositories.withdrawal_repository import WithdrawalRepository
from mlm_app.services.user.core import require_admin


class WithdrawalQueryService:
    """Withdrawal queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize withdrawal query service."""
        self.session = session
        self.withdrawal_repo = WithdrawalRepository(session)
        self.user_repo = UserRepository(session)

    async def get_user_withdrawals(self, user_id: str) -> list[WithdrawalRequest]:
        """Get a user's withdrawal requests, newest first."""
        return await self.withdrawal_repo.get_by_user(user_id)

    async def get_withdrawal_by_id(self, request_id: int) -> WithdrawalRequest | None:
        return await self.withdrawal_repo.get_by_id(request_id)

    async def get_all_withdrawals(
        self,
        admin_id: str,
        status: WithdrawalStatus | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Get every withdrawal request with the requester's name and email.

        Raises:
            PermissionDeniedError: Actor is not an admin
        """
        await require_admin(self.user_repo, admin_id)
        rows = await self.withdrawal_repo.list_with_users(status, limit)
        return [
            {
                "id": request.id,
                "user_id": request.user_id,
                "user_name": name,
                "user_email": email,
                "amount": request.amount,
                "account_name": request.account_name,
                "account_number": request.account_number,
                "ifsc_code": request.ifsc_code,
                "bank_name": request.bank_name,
                "status": request.status,
                "remarks": request.remarks,
                "external_transaction_id": request.external_transaction_id,
                "created_at": request.created_at,
                "processed_at": request.processed_at,
            }
            for request, name, email in rows
        ]
