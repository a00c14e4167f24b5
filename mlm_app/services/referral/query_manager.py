"""
Referral query management module.

Read-only downline projections, served from the cache when fresh and
retried with backoff when the store fails transiently. Nothing computed
here is written back to users.
"""

from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.config.settings import settings
from mlm_app.models.user import User
from mlm_app.repositories.referral_repository import ReferralRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.services.referral.graph import TeamSize
from mlm_app.services.referral.team_manager import load_subtree
from mlm_app.utils.cache import CacheService
from mlm_app.utils.exceptions import TransientStoreError
from mlm_app.utils.retry import call_with_retry


@dataclass
class DownlineMember:
    """One user in somebody's downline."""

    id: str
    name: str
    email: str
    referral_code: str
    sponsor_id: str | None
    level: int
    direct_referrals: int
    total_team_size: int
    status: str
    joined_at: datetime

    @classmethod
    def from_user(cls, user: User, level: int, size: TeamSize) -> "DownlineMember":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            referral_code=user.referral_code,
            sponsor_id=user.sponsor_id,
            level=level,
            direct_referrals=size.direct,
            total_team_size=size.total,
            status=user.status,
            joined_at=user.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["joined_at"] = self.joined_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DownlineMember":
        values = dict(data)
        values["joined_at"] = datetime.fromisoformat(values["joined_at"])
        return cls(**values)


class ReferralQueryManager:
    """Manages downline queries."""

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheService | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ) -> None:
        """Initialize query manager."""
        self.session = session
        self.cache = cache
        self.user_repo = UserRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.max_attempts = max_attempts or settings.store_max_retries
        self.base_delay = (
            settings.store_retry_base_delay if base_delay is None else base_delay
        )

    async def get_direct_downline(self, user_id: str) -> list[DownlineMember]:
        """
        Get users directly sponsored by user_id.

        Each member carries its own recursively computed team counters.

        Args:
            user_id: Sponsor user ID

        Returns:
            Direct referrals, oldest first

        Raises:
            TransientStoreError: Store unavailable and no cached copy exists
        """
        return await self._cached_read(
            CacheService.direct_downline_key(user_id),
            lambda: self._load_direct_downline(user_id),
            operation_name=f"get_direct_downline({user_id})",
        )

    async def get_all_downline(self, user_id: str) -> list[DownlineMember]:
        """
        Get every user below user_id (breadth-first).

        Each member's `level` is its depth relative to user_id. The length
        of this list is a projection, not the persisted team size.

        Args:
            user_id: Root user ID

        Returns:
            Downline ordered by level

        Raises:
            TransientStoreError: Store unavailable and no cached copy exists
        """
        return await self._cached_read(
            CacheService.all_downline_key(user_id),
            lambda: self._load_all_downline(user_id),
            operation_name=f"get_all_downline({user_id})",
        )

    async def _cached_read(
        self,
        key: str,
        loader: Callable[[], Awaitable[list[DownlineMember]]],
        operation_name: str,
    ) -> list[DownlineMember]:
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return [DownlineMember.from_dict(item) for item in cached]

        try:
            members = await call_with_retry(
                loader,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                operation_name=operation_name,
                on_retry=self.session.rollback,
            )
        except TransientStoreError:
            if self.cache is not None:
                stale = await self.cache.get_last_known(key)
                if stale is not None:
                    logger.warning(
                        "Store unavailable, serving last known downline",
                        extra={"cache_key": key},
                    )
                    return [DownlineMember.from_dict(item) for item in stale]
            raise

        if self.cache is not None:
            await self.cache.set(
                key,
                [member.to_dict() for member in members],
                ttl=self.cache.downline_ttl,
            )
        return members

    async def _load_direct_downline(self, user_id: str) -> list[DownlineMember]:
        children = await self.user_repo.get_direct_referrals(user_id)
        if not children:
            return []

        graph = await load_subtree(self.referral_repo, user_id)
        sizes: dict[str, TeamSize] = {}
        graph.team_sizes(user_id, sizes)

        return [
            DownlineMember.from_user(child, 1, sizes.get(child.id, TeamSize(0, 0)))
            for child in children
        ]

    async def _load_all_downline(self, user_id: str) -> list[DownlineMember]:
        graph = await load_subtree(self.referral_repo, user_id)
        depths = graph.depths(user_id)
        if not depths:
            return []

        sizes: dict[str, TeamSize] = {}
        graph.team_sizes(user_id, sizes)
        users = await self.user_repo.get_many(depths)

        return [
            DownlineMember.from_user(
                users[member_id], level, sizes.get(member_id, TeamSize(0, 0))
            )
            for member_id, level in depths.items()
            if member_id in users
        ]
