"""
Referral chain management module.

Handles sponsor chain retrieval and creation of the direct referral edge.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.referral import ReferralEdge
from mlm_app.models.user import User
from mlm_app.repositories.referral_repository import ReferralRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.services.referral.graph import TeamSize
from mlm_app.services.referral.team_manager import ReferralTeamManager
from mlm_app.utils.cache import CacheService
from mlm_app.utils.exceptions import (
    DuplicateReferralError,
    InvalidSponsorError,
    NotFoundError,
    ReferralCycleError,
)


@dataclass
class ReferralResult:
    """Result of attaching a user to a sponsor."""

    edge: ReferralEdge
    sponsor_chain: list[User]
    sponsor_team: TeamSize


class ReferralChainManager:
    """Manages sponsor chains and referral edges."""

    def __init__(
        self, session: AsyncSession, cache: CacheService | None = None
    ) -> None:
        """Initialize chain manager."""
        self.session = session
        self.cache = cache
        self.user_repo = UserRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.team_manager = ReferralTeamManager(session, cache)

    async def get_sponsor_chain(
        self, user_id: str, max_depth: int | None = None
    ) -> list[User]:
        """
        Get the chain of sponsors above a user.

        Args:
            user_id: User ID
            max_depth: Number of levels to walk (None = up to the root)

        Returns:
            List of users from direct sponsor (level 1) upward

        Raises:
            ReferralCycleError: If the stored chain loops
        """
        chain = await self.user_repo.get_ancestors(user_id, max_depth)

        logger.debug(
            "Sponsor chain retrieved",
            extra={
                "user_id": user_id,
                "max_depth": max_depth,
                "chain_length": len(chain),
            },
        )
        return chain

    async def is_ancestor(self, ancestor_id: str, user_id: str) -> bool:
        """Check whether ancestor_id sits anywhere above user_id."""
        chain = await self.get_sponsor_chain(user_id)
        return any(sponsor.id == ancestor_id for sponsor in chain)

    async def create_referral(
        self, new_user_id: str, sponsor_id: str
    ) -> ReferralResult:
        """
        Attach a new user to its sponsor.

        Inserts exactly one direct edge, drops cached downlines along the
        sponsor chain and recomputes team sizes from the sponsor upward.
        Wallets are not touched. The caller commits.

        Args:
            new_user_id: Newly registered user
            sponsor_id: Direct sponsor

        Returns:
            ReferralResult with the edge, sponsor chain and sponsor's new size

        Raises:
            InvalidSponsorError: Sponsor missing or banned
            NotFoundError: New user missing
            DuplicateReferralError: New user already has a sponsor
            ReferralCycleError: Edge would make a user its own ancestor
        """
        sponsor = await self.user_repo.get_by_id(sponsor_id)
        if sponsor is None or sponsor.is_banned:
            raise InvalidSponsorError(
                "Invalid sponsor referral code", sponsor_id=sponsor_id
            )

        if new_user_id == sponsor_id:
            raise ReferralCycleError(
                "User cannot sponsor itself", user_id=new_user_id
            )

        new_user = await self.user_repo.get_by_id(new_user_id)
        if new_user is None:
            raise NotFoundError("User not found", user_id=new_user_id)

        existing = await self.referral_repo.get_by_referred(new_user_id)
        if existing is not None or new_user.sponsor_id not in (None, sponsor_id):
            raise DuplicateReferralError(
                "User already has a sponsor",
                user_id=new_user_id,
                sponsor_id=existing.sponsor_id if existing else new_user.sponsor_id,
            )

        chain = await self.get_sponsor_chain(sponsor_id)
        chain_ids = [sponsor_id] + [user.id for user in chain]
        if new_user_id in chain_ids:
            logger.warning(
                "Referral loop detected",
                extra={
                    "new_user_id": new_user_id,
                    "sponsor_id": sponsor_id,
                    "chain_ids": chain_ids,
                },
            )
            raise ReferralCycleError(
                "Referral would create a cycle",
                user_id=new_user_id,
                sponsor_id=sponsor_id,
            )

        edge = await self.referral_repo.create(
            sponsor_id=sponsor_id,
            referred_id=new_user_id,
            level=1,
        )
        new_user.sponsor_id = sponsor_id
        new_user.sponsor_referral_code = sponsor.referral_code
        await self.session.flush()

        logger.info(
            "Referral created",
            extra={
                "new_user_id": new_user_id,
                "sponsor_id": sponsor_id,
                "chain_length": len(chain_ids),
            },
        )

        if self.cache is not None:
            await self.cache.invalidate_downline(chain_ids)

        sponsor_team = await self.team_manager.recompute_team_size(sponsor_id)

        return ReferralResult(
            edge=edge,
            sponsor_chain=[sponsor] + chain,
            sponsor_team=sponsor_team,
        )
