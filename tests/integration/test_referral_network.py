"""
Integration tests for the referral network.

Covers:
- Registration under a sponsor code
- Team size propagation up the chain
- Rejected sponsors, duplicates and cycles
- Recomputation (idempotent, dangling edges)
- Downline queries against the store
"""

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from mlm_app.models import ReferralEdge, User, UserStatus, Wallet
from mlm_app.services.referral import ReferralChainManager, TeamSize
from mlm_app.services.referral_service import ReferralService
from mlm_app.services.user import UserService
from mlm_app.utils.cache import CacheService
from mlm_app.utils.exceptions import (
    DuplicateReferralError,
    InvalidSponsorError,
    NotFoundError,
    ReferralCycleError,
    ValidationError,
)


async def team_of(session, user_id: str) -> tuple[int, int]:
    user = await session.get(User, user_id)
    await session.refresh(user)
    return user.direct_referrals, user.total_team_size


@pytest.fixture
def user_service(session, cache):
    return UserService(session, cache)


@pytest_asyncio.fixture
async def network(user_service):
    """
    admin -> b -> {c, d}
    """
    admin = await user_service.create_root_admin("admin", "Admin", "admin@example.com")
    b = await user_service.register_user("b", "Bina", "b@example.com", admin.referral_code)
    await user_service.register_user("c", "Chetan", "c@example.com", b.referral_code)
    await user_service.register_user("d", "Divya", "d@example.com", b.referral_code)
    return admin


class TestRegistration:
    """Test user registration with a sponsor."""

    @pytest.mark.asyncio
    async def test_register_creates_user_wallet_and_edge(self, session, user_service):
        """A registered user has a sponsor, a wallet and one edge."""
        admin = await user_service.create_root_admin(
            "admin", "Admin", "admin@example.com"
        )

        user = await user_service.register_user(
            "u1", "Asha", "Asha@Example.com", admin.referral_code.lower()
        )

        assert user.sponsor_id == "admin"
        assert user.sponsor_referral_code == admin.referral_code
        assert user.email == "asha@example.com"
        assert len(user.referral_code) == 16
        assert await session.get(Wallet, "u1") is not None

        edges = (await session.execute(select(ReferralEdge))).scalars().all()
        assert [(e.sponsor_id, e.referred_id, e.level) for e in edges] == [
            ("admin", "u1", 1)
        ]

    @pytest.mark.asyncio
    async def test_unknown_sponsor_code_writes_nothing(self, session, user_service):
        """Invalid sponsor code is rejected before any write."""
        await user_service.create_root_admin("admin", "Admin", "admin@example.com")

        with pytest.raises(InvalidSponsorError):
            await user_service.register_user(
                "u1", "Asha", "asha@example.com", "NOSUCHCODE"
            )

        assert await session.scalar(select(func.count()).select_from(User)) == 1
        assert await session.scalar(select(func.count()).select_from(Wallet)) == 1

    @pytest.mark.asyncio
    async def test_banned_sponsor_rejected(self, session, factory, user_service):
        """Banned users cannot sponsor."""
        await factory.user("admin", is_admin=True)
        await factory.user("banned", "admin", status=UserStatus.BANNED)
        await session.commit()

        with pytest.raises(InvalidSponsorError):
            await user_service.register_user(
                "u1", "Asha", "asha@example.com", "REFBANNED"
            )

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, network, user_service):
        """Email addresses are unique (case-insensitive)."""
        with pytest.raises(ValidationError):
            await user_service.register_user(
                "x", "Other", "B@example.com", network.referral_code
            )

    @pytest.mark.asyncio
    async def test_duplicate_user_id_rejected(self, network, user_service):
        """An id cannot register twice."""
        with pytest.raises(ValidationError):
            await user_service.register_user(
                "c", "Again", "again@example.com", network.referral_code
            )

    @pytest.mark.asyncio
    async def test_second_root_admin_rejected(self, network, user_service):
        """Only one sponsor-less admin may exist."""
        with pytest.raises(ValidationError):
            await user_service.create_root_admin("admin2", "Admin 2", "a2@example.com")

    @pytest.mark.asyncio
    async def test_referral_link(self, network, user_service):
        """Users share ?ref=<code> links."""
        link = user_service.get_referral_link(network)

        assert link.endswith(f"/register?ref={network.referral_code}")


class TestTeamSizes:
    """Test persisted team counters."""

    @pytest.mark.asyncio
    async def test_counters_after_registrations(self, session, network):
        """admin -> b -> {c, d}: b has 2/2, admin 1/3."""
        assert await team_of(session, "b") == (2, 2)
        assert await team_of(session, "admin") == (1, 3)
        assert await team_of(session, "c") == (0, 0)

    @pytest.mark.asyncio
    async def test_deeper_registration_propagates(self, session, network, user_service):
        """A new leaf under c bumps c, b and admin totals by one."""
        c = await session.get(User, "c")
        await user_service.register_user("e", "Esha", "e@example.com", c.referral_code)

        assert await team_of(session, "c") == (1, 1)
        assert await team_of(session, "b") == (2, 3)
        assert await team_of(session, "admin") == (1, 4)
        # The sibling and the new leaf itself stay at zero
        assert await team_of(session, "d") == (0, 0)
        assert await team_of(session, "e") == (0, 0)

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, session, network):
        """Recomputing without edge changes leaves counters unchanged."""
        service = ReferralService(session)

        first = await service.recompute_team_size("c")
        second = await service.recompute_team_size("b")
        changed = await service.recompute_all()

        assert first == TeamSize(direct=0, total=0)
        assert second == TeamSize(direct=2, total=2)
        assert changed == 0
        assert await team_of(session, "admin") == (1, 3)

    @pytest.mark.asyncio
    async def test_recompute_missing_user(self, session):
        """Recomputing an unknown user raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await ReferralService(session).recompute_team_size("ghost")

    @pytest.mark.asyncio
    async def test_recompute_all_repairs_drift(self, session, factory):
        """Stored counters that drifted are corrected."""
        await factory.user("a", is_admin=True)
        await factory.user("b", "a")
        await factory.user("c", "b")
        drifted = await session.get(User, "a")
        drifted.direct_referrals = 5
        drifted.total_team_size = 9
        await session.commit()

        changed = await ReferralService(session).recompute_all()
        await session.commit()

        assert changed == 2  # a drifted, b was never computed
        assert await team_of(session, "a") == (1, 2)
        assert await team_of(session, "b") == (1, 1)

    @pytest.mark.asyncio
    async def test_dangling_edge_counts_zero(self, session, factory):
        """An edge to a user that no longer exists contributes nothing."""
        await factory.user("a", is_admin=True)
        await factory.user("b", "a")
        session.add(ReferralEdge(sponsor_id="a", referred_id="ghost", level=1))
        await session.flush()

        size = await ReferralService(session).recompute_team_size("a")

        assert size == TeamSize(direct=1, total=1)

    @pytest.mark.asyncio
    async def test_recompute_invalidates_downline_cache(self, session, factory, cache):
        """Changed users lose their cached downline."""
        await factory.user("a", is_admin=True)
        await factory.user("b", "a")
        await cache.set(CacheService.direct_downline_key("a"), [], ttl=300)

        await ReferralService(session, cache).recompute_team_size("b")

        assert await cache.get(CacheService.direct_downline_key("a")) is None


class TestCreateReferral:
    """Test direct edge creation rules."""

    @pytest.mark.asyncio
    async def test_self_sponsorship_rejected(self, session, factory):
        """A user cannot sponsor itself."""
        await factory.user("a", is_admin=True)

        with pytest.raises(ReferralCycleError):
            await ReferralChainManager(session).create_referral("a", "a")

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, session, factory):
        """Attaching an ancestor under its own descendant is rejected."""
        await factory.user("a", is_admin=True)
        await factory.user("b", "a")
        await factory.user("c", "b")

        # a has no sponsor, but sits above c
        with pytest.raises(ReferralCycleError):
            await ReferralChainManager(session).create_referral("a", "c")

    @pytest.mark.asyncio
    async def test_second_sponsor_rejected(self, session, factory):
        """A user keeps exactly one sponsor."""
        await factory.user("a", is_admin=True)
        await factory.user("b", "a")
        await factory.user("z", "a")

        with pytest.raises(DuplicateReferralError):
            await ReferralChainManager(session).create_referral("b", "z")

    @pytest.mark.asyncio
    async def test_missing_new_user(self, session, factory):
        """The referred user must exist."""
        await factory.user("a", is_admin=True)

        with pytest.raises(NotFoundError):
            await ReferralChainManager(session).create_referral("ghost", "a")

    @pytest.mark.asyncio
    async def test_missing_sponsor(self, session, factory):
        """The sponsor must exist."""
        await factory.user("a", is_admin=True)

        with pytest.raises(InvalidSponsorError):
            await ReferralChainManager(session).create_referral("a", "ghost")

    @pytest.mark.asyncio
    async def test_result_carries_chain_and_team(self, session, factory):
        """The result lists the sponsor chain and the sponsor's new size."""
        await factory.user("a", is_admin=True)
        await factory.user("b", "a")
        await factory.user("n", with_edge=False)

        result = await ReferralChainManager(session).create_referral("n", "b")

        assert [u.id for u in result.sponsor_chain] == ["b", "a"]
        assert result.sponsor_team == TeamSize(direct=1, total=1)
        assert result.edge.sponsor_id == "b"


class TestSponsorChain:
    """Test ancestor walks."""

    @pytest.mark.asyncio
    async def test_chain_order_and_depth(self, session, factory):
        """Chain runs from direct sponsor upward, limited by max_depth."""
        await factory.user("a", is_admin=True)
        await factory.user("b", "a")
        await factory.user("c", "b")
        await factory.user("d", "c")
        service = ReferralService(session)

        full = await service.get_sponsor_chain("d")
        limited = await service.get_sponsor_chain("d", max_depth=2)

        assert [u.id for u in full] == ["c", "b", "a"]
        assert [u.id for u in limited] == ["c", "b"]
        assert await service.is_ancestor("a", "d") is True
        assert await service.is_ancestor("d", "a") is False

    @pytest.mark.asyncio
    async def test_stored_loop_detected(self, session, factory):
        """A loop in stored sponsor pointers raises instead of spinning."""
        await factory.user("a", with_edge=False)
        await factory.user("b", "a")
        a = await session.get(User, "a")
        a.sponsor_id = "b"
        await session.flush()

        with pytest.raises(ReferralCycleError):
            await ReferralService(session).get_sponsor_chain("b")


class TestDownlineQueries:
    """Test downline reads against the store."""

    @pytest.mark.asyncio
    async def test_direct_downline(self, session, network, cache):
        """Direct referrals with their own team counters."""
        service = ReferralService(session, cache)

        admin_direct = await service.get_direct_downline("admin")
        b_direct = await service.get_direct_downline("b")

        assert [(m.id, m.direct_referrals, m.total_team_size) for m in admin_direct] == [
            ("b", 2, 2)
        ]
        assert sorted(m.id for m in b_direct) == ["c", "d"]
        assert all(m.level == 1 for m in b_direct)

    @pytest.mark.asyncio
    async def test_all_downline_levels(self, session, network, cache):
        """Every descendant with its depth relative to the root."""
        service = ReferralService(session, cache)

        downline = await service.get_all_downline("admin")

        assert {(m.id, m.level) for m in downline} == {("b", 1), ("c", 2), ("d", 2)}
        assert [m.level for m in downline] == sorted(m.level for m in downline)

    @pytest.mark.asyncio
    async def test_registration_invalidates_downline(
        self, session, network, cache, user_service
    ):
        """A new referral shows up immediately despite the cache."""
        service = ReferralService(session, cache)
        assert len(await service.get_all_downline("admin")) == 3

        c = await session.get(User, "c")
        await user_service.register_user("e", "Esha", "e@example.com", c.referral_code)

        downline = await service.get_all_downline("admin")
        assert len(downline) == 4
        assert ("e", 3) in {(m.id, m.level) for m in downline}

    @pytest.mark.asyncio
    async def test_empty_downline(self, session, network, cache):
        """Leaves have no downline."""
        service = ReferralService(session, cache)

        assert await service.get_direct_downline("c") == []
        assert await service.get_all_downline("c") == []
