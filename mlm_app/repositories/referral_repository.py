"""
Referral repository.

Data access layer for ReferralEdge model.
"""

from collections.abc import Iterable
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.referral import ReferralEdge
from mlm_app.models.user import User
from mlm_app.repositories.base import BaseRepository
from mlm_app.repositories.user_repository import chunked


class EdgeRow(NamedTuple):
    """Edge as loaded for graph building."""

    sponsor_id: str
    referred_id: str
    referred_exists: bool


class ReferralRepository(BaseRepository[ReferralEdge]):
    """Referral edge repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral repository."""
        super().__init__(ReferralEdge, session)

    async def get_by_referred(self, referred_id: str) -> ReferralEdge | None:
        """
        Get the edge pointing at a referred user.

        Args:
            referred_id: Referred user ID

        Returns:
            Edge or None if the user has no sponsor
        """
        return await self.get_by(referred_id=referred_id)

    async def get_edges_for_sponsors(
        self, sponsor_ids: Iterable[str]
    ) -> list[EdgeRow]:
        """
        Get outgoing edges of many sponsors in batched IN queries.

        The referred user is outer-joined so an edge whose referred user
        no longer resolves is still returned, flagged as dangling.

        Args:
            sponsor_ids: Sponsor user IDs (one tree level)

        Returns:
            Edges ordered by sponsor, then creation
        """
        rows: list[EdgeRow] = []
        for batch in chunked(sponsor_ids):
            stmt = (
                select(
                    ReferralEdge.sponsor_id,
                    ReferralEdge.referred_id,
                    User.id,
                )
                .outerjoin(User, User.id == ReferralEdge.referred_id)
                .where(ReferralEdge.sponsor_id.in_(batch))
                .order_by(
                    ReferralEdge.sponsor_id,
                    ReferralEdge.created_at,
                    ReferralEdge.id,
                )
            )
            result = await self.session.execute(stmt)
            rows.extend(
                EdgeRow(sponsor_id, referred_id, user_id is not None)
                for sponsor_id, referred_id, user_id in result.all()
            )
        return rows

    async def get_all_edges(self) -> list[EdgeRow]:
        """
        Get every edge with a dangling flag in one query.

        Used by the batch reconciliation.
        """
        stmt = (
            select(
                ReferralEdge.sponsor_id,
                ReferralEdge.referred_id,
                User.id,
            )
            .outerjoin(User, User.id == ReferralEdge.referred_id)
            .order_by(ReferralEdge.created_at, ReferralEdge.id)
        )
        result = await self.session.execute(stmt)
        return [
            EdgeRow(sponsor_id, referred_id, user_id is not None)
            for sponsor_id, referred_id, user_id in result.all()
        ]
