"""
Dashboard service.

Aggregates for the admin dashboard and a user's own analytics page.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.config.constants import DASHBOARD_RECENT_ITEMS, DASHBOARD_RECENT_USERS
from mlm_app.models.enums import TransactionType, WithdrawalStatus
from mlm_app.repositories.transaction_repository import TransactionRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.repositories.wallet_repository import WalletRepository
from mlm_app.repositories.withdrawal_repository import WithdrawalRepository
from mlm_app.services.user.core import require_admin
from mlm_app.services.user.registration import build_referral_link
from mlm_app.utils.exceptions import NotFoundError


class DashboardService:
    """Dashboard statistics."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize dashboard service."""
        self.session = session
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.transaction_repo = TransactionRepository(session)
        self.withdrawal_repo = WithdrawalRepository(session)

    async def get_admin_dashboard(self, admin_id: str) -> dict[str, Any]:
        """
        Get system-wide totals and recent activity.

        system_balance = completed deposits - approved withdrawals - commissions

        Raises:
            PermissionDeniedError: Actor is not an admin
        """
        await require_admin(self.user_repo, admin_id)

        total_users = await self.user_repo.count()
        total_deposits = await self.transaction_repo.sum_amount(
            (TransactionType.DEPOSIT,)
        )
        total_withdrawals = await self.withdrawal_repo.sum_amount(
            WithdrawalStatus.APPROVED
        )
        total_commissions = await self.transaction_repo.sum_commissions()
        since = datetime.now(UTC) - timedelta(hours=24)

        recent_users = await self.user_repo.list_with_sponsor_names(
            DASHBOARD_RECENT_USERS
        )
        recent_withdrawals = await self.withdrawal_repo.list_with_users(
            limit=DASHBOARD_RECENT_ITEMS
        )
        recent_deposits = await self.transaction_repo.find_recent_with_users(
            TransactionType.DEPOSIT, DASHBOARD_RECENT_ITEMS
        )

        return {
            "total_users": total_users,
            "total_deposits": total_deposits,
            "total_withdrawals": total_withdrawals,
            "total_commissions": total_commissions,
            "system_balance": total_deposits - total_withdrawals - total_commissions,
            "transactions_last_24h": await self.transaction_repo.count_since(since),
            "recent_users": [
                {
                    "id": user.id,
                    "name": user.name,
                    "email": user.email,
                    "sponsor_name": sponsor_name,
                    "created_at": user.created_at,
                }
                for user, sponsor_name in recent_users
            ],
            "recent_withdrawals": [
                {
                    "id": request.id,
                    "user_name": name,
                    "amount": request.amount,
                    "status": request.status,
                    "created_at": request.created_at,
                }
                for request, name, _email in recent_withdrawals
            ],
            "recent_deposits": [
                {
                    "id": tx.id,
                    "user_name": name,
                    "amount": tx.amount,
                    "status": tx.status,
                    "created_at": tx.created_at,
                }
                for tx, name in recent_deposits
            ],
        }

    async def get_user_analytics(self, user_id: str) -> dict[str, Any]:
        """
        Get a user's income breakdown, wallet summary and team sizes.

        Raises:
            NotFoundError: User does not exist
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        wallet = await self.wallet_repo.get_by_user(user_id)
        zero = Decimal("0")

        return {
            "user_id": user.id,
            "referral_code": user.referral_code,
            "referral_link": build_referral_link(user.referral_code),
            "income": {
                "level_income": user.level_income,
                "sponsor_income": user.sponsor_income,
                "profit_share": user.profit_share,
                "total_income": user.total_income,
            },
            "wallet": {
                "balance": wallet.balance if wallet else zero,
                "total_invested": wallet.total_invested if wallet else zero,
                "total_income": wallet.total_income if wallet else zero,
                "total_withdrawals": wallet.total_withdrawals if wallet else zero,
            },
            "team": {
                "direct_referrals": user.direct_referrals,
                "total_team_size": user.total_team_size,
            },
            "unread_notifications": user.unread_notifications,
        }
