"""
Referral service.

Single entry point for the referral network: edges, team sizes, downline
reads and commission distribution.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.user import User
from mlm_app.services.referral import (
    CommissionDistributor,
    CommissionResult,
    DownlineMember,
    ReferralChainManager,
    ReferralQueryManager,
    ReferralResult,
    ReferralTeamManager,
    TeamSize,
)
from mlm_app.utils.cache import CacheService


class ReferralService:
    """Referral service delegating to the referral managers."""

    def __init__(
        self, session: AsyncSession, cache: CacheService | None = None
    ) -> None:
        """Initialize referral service."""
        self.session = session
        self.cache = cache
        self.chain_manager = ReferralChainManager(session, cache)
        self.team_manager = ReferralTeamManager(session, cache)
        self.query_manager = ReferralQueryManager(session, cache)
        self.commission_distributor = CommissionDistributor(session)

    async def create_referral(
        self, new_user_id: str, sponsor_id: str
    ) -> ReferralResult:
        """Attach a new user under its sponsor (caller commits)."""
        return await self.chain_manager.create_referral(new_user_id, sponsor_id)

    async def get_sponsor_chain(
        self, user_id: str, max_depth: int | None = None
    ) -> list[User]:
        return await self.chain_manager.get_sponsor_chain(user_id, max_depth)

    async def is_ancestor(self, ancestor_id: str, user_id: str) -> bool:
        return await self.chain_manager.is_ancestor(ancestor_id, user_id)

    async def recompute_team_size(self, user_id: str) -> TeamSize:
        """Recompute and persist team sizes from user_id to the root (caller commits)."""
        return await self.team_manager.recompute_team_size(user_id)

    async def recompute_all(self) -> int:
        return await self.team_manager.recompute_all()

    async def get_direct_downline(self, user_id: str) -> list[DownlineMember]:
        return await self.query_manager.get_direct_downline(user_id)

    async def get_all_downline(self, user_id: str) -> list[DownlineMember]:
        return await self.query_manager.get_all_downline(user_id)

    async def distribute_commissions(
        self,
        depositor_id: str,
        deposit_amount: Decimal,
        source_transaction_id: int | None = None,
    ) -> CommissionResult:
        """Credit commissions for a deposit (caller commits)."""
        return await self.commission_distributor.distribute_commissions(
            depositor_id, deposit_amount, source_transaction_id
        )
