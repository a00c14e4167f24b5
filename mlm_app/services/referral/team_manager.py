"""
Team size management module.

Recomputes direct/total team counters from the referral edges and writes
them back onto users, propagating up the sponsor chain.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.repositories.referral_repository import ReferralRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.services.referral.graph import ReferralGraph, TeamSize
from mlm_app.utils.cache import CacheService
from mlm_app.utils.exceptions import NotFoundError


async def load_subtree(
    referral_repo: ReferralRepository,
    root_id: str,
    known: dict[str, TeamSize] | None = None,
) -> ReferralGraph:
    """
    Load the subtree under root_id level by level (one query per depth).

    Nodes present in `known` are attached but not expanded.

    Args:
        referral_repo: Referral repository
        root_id: Subtree root
        known: Memo of nodes whose subtree is already accounted for

    Returns:
        ReferralGraph of the loaded edges
    """
    known = known or {}
    graph = ReferralGraph()
    seen = {root_id}
    frontier = [root_id]

    while frontier:
        next_frontier: list[str] = []
        for row in await referral_repo.get_edges_for_sponsors(frontier):
            graph.add_edge(row.sponsor_id, row.referred_id, row.referred_exists)
            child = row.referred_id
            if row.referred_exists and child not in seen and child not in known:
                seen.add(child)
                next_frontier.append(child)
        frontier = next_frontier

    return graph


class ReferralTeamManager:
    """Maintains persisted team counters."""

    def __init__(
        self, session: AsyncSession, cache: CacheService | None = None
    ) -> None:
        """Initialize team manager."""
        self.session = session
        self.cache = cache
        self.user_repo = UserRepository(session)
        self.referral_repo = ReferralRepository(session)

    async def recompute_team_size(self, user_id: str) -> TeamSize:
        """
        Recompute team counters of a user and every ancestor up to the root.

        direct = number of edges whose referred user exists,
        total = direct + sum of the children's totals. Rows on the chain are
        locked (ordered by id) for the rest of the caller's transaction.
        The caller commits.

        Args:
            user_id: User whose subtree changed

        Returns:
            Recomputed size of user_id

        Raises:
            NotFoundError: If user does not exist
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)

        ancestors = await self.user_repo.get_ancestors(user_id)
        chain_ids = [user_id] + [ancestor.id for ancestor in ancestors]
        await self.user_repo.lock_users(chain_ids)

        # Memo scoped to this call: each ancestor reuses the subtree below it
        memo: dict[str, TeamSize] = {}
        changed: list[str] = []

        for node_id in chain_ids:
            graph = await load_subtree(self.referral_repo, node_id, memo)
            computed = graph.team_sizes(node_id, memo)
            changed.extend(await self._write_back(computed))

        if changed and self.cache is not None:
            await self.cache.invalidate_downline(changed)

        result = memo[user_id]
        logger.info(
            "Team size recomputed",
            extra={
                "user_id": user_id,
                "direct_referrals": result.direct,
                "total_team_size": result.total,
                "chain_length": len(chain_ids),
                "users_changed": len(changed),
            },
        )
        return result

    async def recompute_all(self) -> int:
        """
        Reconcile team counters of every user from all edges.

        Builds the whole forest from a single edge query.

        Returns:
            Number of users whose counters changed
        """
        graph = ReferralGraph.from_edges(await self.referral_repo.get_all_edges())
        memo: dict[str, TeamSize] = {}

        for user_id in await self.user_repo.get_all_ids():
            graph.team_sizes(user_id, memo)

        changed = await self._write_back(memo)

        if changed and self.cache is not None:
            await self.cache.invalidate_downline(changed)

        logger.info(
            "Team sizes reconciled",
            extra={"users_checked": len(memo), "users_changed": len(changed)},
        )
        return len(changed)

    async def _write_back(self, sizes: dict[str, TeamSize]) -> list[str]:
        """Persist counters that differ from the stored ones."""
        if not sizes:
            return []

        users = await self.user_repo.get_many(sizes)
        changed: list[str] = []

        for user_id, size in sizes.items():
            user = users.get(user_id)
            if user is None:
                continue
            if (
                user.direct_referrals == size.direct
                and user.total_team_size == size.total
            ):
                continue
            user.direct_referrals = size.direct
            user.total_team_size = size.total
            changed.append(user_id)

        if changed:
            await self.session.flush()
        return changed
