"""
In-memory referral graph.

Adjacency index (sponsor -> children) built once per batch of loaded edges,
with iterative traversals so deep chains never hit the recursion limit.
"""

from collections import defaultdict, deque
from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger


@dataclass(frozen=True)
class TeamSize:
    """Team counters of one user."""

    direct: int
    total: int


class ReferralGraph:
    """
    Sponsor -> referred adjacency index.

    Only edges whose referred user exists become children. Dangling edges
    are remembered separately and contribute nothing.
    """

    def __init__(self) -> None:
        self._children: dict[str, list[str]] = defaultdict(list)
        self._dangling: dict[str, list[str]] = defaultdict(list)
        self._sponsor: dict[str, str] = {}

    @classmethod
    def from_edges(
        cls, edges: Iterable[tuple[str, str] | tuple[str, str, bool]]
    ) -> "ReferralGraph":
        """
        Build a graph from (sponsor_id, referred_id[, referred_exists]) rows.

        Args:
            edges: Edge rows, in the order children should be listed

        Returns:
            ReferralGraph
        """
        graph = cls()
        for edge in edges:
            graph.add_edge(*edge)
        return graph

    def add_edge(
        self, sponsor_id: str, referred_id: str, referred_exists: bool = True
    ) -> None:
        """Register one direct edge."""
        if not referred_exists:
            self._dangling[sponsor_id].append(referred_id)
            return
        self._children[sponsor_id].append(referred_id)
        self._sponsor[referred_id] = sponsor_id

    def children(self, user_id: str) -> list[str]:
        """Direct referrals of a user (existing users only)."""
        return list(self._children.get(user_id, ()))

    def sponsor(self, user_id: str) -> str | None:
        """Sponsor of a user, if the edge was loaded."""
        return self._sponsor.get(user_id)

    def dangling(self, user_id: str) -> list[str]:
        """Referred ids of a user's edges that point at missing users."""
        return list(self._dangling.get(user_id, ()))

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._children or user_id in self._sponsor

    def team_sizes(
        self, root: str, known: dict[str, TeamSize] | None = None
    ) -> dict[str, TeamSize]:
        """
        Compute team sizes for a subtree in post-order.

        direct = number of children, total = direct + sum of child totals.
        Nodes already in `known` are not descended into; their stored size
        is used as is. Every computed node is added to `known`, so one memo
        can be shared across several calls.

        A node met again while still on the current path closes a cycle: it
        is logged and contributes 0.

        Args:
            root: Subtree root
            known: Memo of already computed sizes (mutated)

        Returns:
            Sizes computed by this call (empty if root was already known)
        """
        memo = known if known is not None else {}
        computed: dict[str, TeamSize] = {}
        if root in memo:
            return computed

        # (node, children_done)
        stack: list[tuple[str, bool]] = [(root, False)]
        on_path: set[str] = set()

        while stack:
            node, children_done = stack.pop()
            kids = self._children.get(node, ())

            if children_done:
                on_path.discard(node)
                total = len(kids) + sum(
                    memo[child].total for child in kids if child in memo
                )
                size = TeamSize(direct=len(kids), total=total)
                memo[node] = size
                computed[node] = size
                continue

            if node in memo:
                continue
            if node in on_path:
                logger.error(
                    "Referral cycle detected, branch counted as 0",
                    extra={"user_id": node, "root_id": root},
                )
                continue

            if node in self._dangling:
                logger.error(
                    "Referral edge points at a missing user, branch counted as 0",
                    extra={
                        "sponsor_id": node,
                        "missing_ids": self._dangling[node],
                    },
                )

            on_path.add(node)
            stack.append((node, True))
            for child in reversed(kids):
                if child not in memo:
                    stack.append((child, False))

        return computed

    def descendants(self, root: str) -> list[str]:
        """
        All users below root, pre-order (each visited once).

        Args:
            root: Subtree root

        Returns:
            Descendant ids, root excluded
        """
        result: list[str] = []
        visited = {root}
        stack = list(reversed(self._children.get(root, ())))

        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            result.append(node)
            stack.extend(reversed(self._children.get(node, ())))

        return result

    def depths(self, root: str) -> dict[str, int]:
        """
        Breadth-first depth of every descendant relative to root.

        Returns:
            Mapping descendant id -> level (direct referrals are level 1)
        """
        levels: dict[str, int] = {}
        visited = {root}
        queue: deque[tuple[str, int]] = deque([(root, 0)])

        while queue:
            node, depth = queue.popleft()
            for child in self._children.get(node, ()):
                if child in visited:
                    continue
                visited.add(child)
                levels[child] = depth + 1
                queue.append((child, depth + 1))

        return levels
