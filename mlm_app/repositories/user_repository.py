"""
User repository.

Data access layer for User model.
"""

from collections.abc import Iterable

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from mlm_app.config.constants import SUBTREE_QUERY_CHUNK
from mlm_app.models.user import User
from mlm_app.repositories.base import BaseRepository
from mlm_app.utils.exceptions import ReferralCycleError


def chunked(ids: Iterable[str], size: int = SUBTREE_QUERY_CHUNK) -> Iterable[list[str]]:
    """Split ids into IN (...) sized batches."""
    batch: list[str] = []
    for item in ids:
        batch.append(item)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_referral_code(
        self, referral_code: str
    ) -> User | None:
        """
        Get user by referral code.

        Args:
            referral_code: Referral code

        Returns:
            User or None
        """
        return await self.get_by(referral_code=referral_code)

    async def get_by_email(self, email: str) -> User | None:
        """
        Get user by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            User or None
        """
        if not email:
            return None
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, User]:
        """
        Load users by id in batches.

        Returns:
            Mapping of id -> User for the ids that exist
        """
        users: dict[str, User] = {}
        for batch in chunked(dict.fromkeys(user_ids)):
            result = await self.session.execute(
                select(User).where(User.id.in_(batch))
            )
            for user in result.scalars().all():
                users[user.id] = user
        return users

    async def lock_users(self, user_ids: Iterable[str]) -> list[User]:
        """
        Lock user rows (SELECT ... FOR UPDATE), always in id order.

        A fixed lock order keeps two writers on overlapping chains from
        deadlocking each other.
        """
        ordered = sorted(set(user_ids))
        if not ordered:
            return []
        stmt = (
            select(User)
            .where(User.id.in_(ordered))
            .order_by(User.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_root_admin(self) -> User | None:
        """
        Get the root administrator (admin without a sponsor).

        Returns:
            Oldest sponsor-less admin or None
        """
        stmt = (
            select(User)
            .where(User.is_admin.is_(True), User.sponsor_id.is_(None))
            .order_by(User.created_at, User.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_direct_referrals(self, sponsor_id: str) -> list[User]:
        """
        Get users directly sponsored by a user, oldest first.

        Args:
            sponsor_id: Sponsor user ID

        Returns:
            List of users
        """
        stmt = (
            select(User)
            .where(User.sponsor_id == sponsor_id)
            .order_by(User.created_at, User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_all_ids(self) -> list[str]:
        """Get every user id."""
        result = await self.session.execute(select(User.id).order_by(User.id))
        return list(result.scalars().all())

    async def list_with_sponsor_names(
        self, limit: int | None = None
    ) -> list[tuple[User, str | None]]:
        """
        List users newest first, each with its sponsor's name.

        Args:
            limit: Max number of results

        Returns:
            List of (user, sponsor name or None)
        """
        sponsor = aliased(User)
        stmt = (
            select(User, sponsor.name)
            .outerjoin(sponsor, User.sponsor_id == sponsor.id)
            .order_by(User.created_at.desc(), User.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def get_ancestors(
        self, user_id: str, max_depth: int | None = None
    ) -> list[User]:
        """
        Walk sponsor pointers upward from a user.

        Args:
            user_id: Starting user (not included in the result)
            max_depth: Stop after this many levels (None = up to the root)

        Returns:
            Sponsors ordered from level 1 (direct sponsor) upward. The walk
            ends at the root, at max_depth, or at a sponsor id that does not
            resolve to a user (logged).

        Raises:
            ReferralCycleError: If a user is reached twice
        """
        user = await self.get_by_id(user_id)
        if user is None:
            return []

        chain: list[User] = []
        visited = {user.id}
        sponsor_id = user.sponsor_id

        while sponsor_id is not None:
            if max_depth is not None and len(chain) >= max_depth:
                break
            if sponsor_id in visited:
                raise ReferralCycleError(
                    "Referral cycle detected in sponsor chain",
                    user_id=user_id,
                    repeated_id=sponsor_id,
                )
            sponsor = await self.get_by_id(sponsor_id)
            if sponsor is None:
                logger.error(
                    "Sponsor chain broken: sponsor does not exist",
                    extra={
                        "user_id": user_id,
                        "missing_sponsor_id": sponsor_id,
                        "level": len(chain) + 1,
                    },
                )
                break
            visited.add(sponsor.id)
            chain.append(sponsor)
            sponsor_id = sponsor.sponsor_id

        return chain
