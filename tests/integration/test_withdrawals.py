"""
Integration tests for the withdrawal lifecycle.

Covers:
- Immediate debit on request
- Approval keeping the debit and completing the ledger entry
- Rejection refunding the wallet with a refund entry
- Limits, insufficient balance and state transitions
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from mlm_app.models import (
    Transaction,
    TransactionStatus,
    TransactionType,
    Wallet,
    WithdrawalRequest,
    WithdrawalStatus,
)
from mlm_app.services.withdrawal import (
    BankDetails,
    WithdrawalLifecycleHandler,
    WithdrawalQueryService,
    WithdrawalRequestHandler,
)
from mlm_app.utils.cache import CacheService
from mlm_app.utils.exceptions import (
    AmountBelowMinimumError,
    InsufficientBalanceError,
    InvalidStateTransitionError,
    PermissionDeniedError,
    ValidationError,
)

BANK = BankDetails(
    account_name="Chetan Rao",
    account_number="000123456789",
    ifsc_code="HDFC0001234",
    bank_name="HDFC Bank",
)


async def wallet_of(session, user_id: str) -> Wallet:
    wallet = await session.get(Wallet, user_id)
    await session.refresh(wallet)
    return wallet


async def transactions_of(session, user_id: str) -> list[Transaction]:
    result = await session.execute(
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .order_by(Transaction.id)
    )
    return list(result.scalars().all())


@pytest_asyncio.fixture
async def funded(session, factory):
    """Admin 'a' and user 'c' holding 1000."""
    await factory.settings(
        min_withdrawal_amount=Decimal("100"),
        max_withdrawal_amount=Decimal("5000"),
    )
    await factory.user("a", is_admin=True)
    await factory.user("c", "a", balance="1000")
    await session.commit()


@pytest.fixture
def request_handler(session, cache):
    return WithdrawalRequestHandler(session, cache)


@pytest.fixture
def lifecycle(session, cache):
    return WithdrawalLifecycleHandler(session, cache)


@pytest.mark.usefixtures("funded")
class TestWithdrawalRequest:
    """Test request creation."""

    @pytest.mark.asyncio
    async def test_request_debits_immediately(self, session, request_handler):
        """Balance drops on request; request and ledger entry are pending."""
        request = await request_handler.create_request("c", Decimal("500"), BANK)

        assert request.status == WithdrawalStatus.PENDING.value
        assert request.amount == Decimal("500.00")
        assert request.ifsc_code == "HDFC0001234"
        assert (await wallet_of(session, "c")).balance == Decimal("500.00")

        [tx] = await transactions_of(session, "c")
        assert tx.type == TransactionType.WITHDRAWAL.value
        assert tx.status == TransactionStatus.PENDING.value
        assert tx.withdrawal_request_id == request.id
        assert request.transaction_id == tx.id

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, session, request_handler):
        """A debit larger than the balance changes nothing."""
        with pytest.raises(InsufficientBalanceError):
            await request_handler.create_request("c", Decimal("1500"), BANK)

        assert (await wallet_of(session, "c")).balance == Decimal("1000.00")
        count = await session.scalar(
            select(func.count()).select_from(WithdrawalRequest)
        )
        assert count == 0

    @pytest.mark.asyncio
    async def test_below_minimum(self, request_handler):
        """Amounts under min_withdrawal_amount are rejected."""
        with pytest.raises(AmountBelowMinimumError):
            await request_handler.create_request("c", Decimal("99.99"), BANK)

    @pytest.mark.asyncio
    async def test_above_maximum(self, request_handler):
        """Amounts over max_withdrawal_amount are rejected."""
        with pytest.raises(ValidationError):
            await request_handler.create_request("c", Decimal("5000.01"), BANK)

    @pytest.mark.asyncio
    async def test_whole_balance(self, session, request_handler):
        """Withdrawing exactly the balance leaves 0."""
        await request_handler.create_request("c", "1000", BANK)

        assert (await wallet_of(session, "c")).balance == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_request_invalidates_transaction_cache(
        self, request_handler, cache
    ):
        """The user's cached history is dropped."""
        key = CacheService.transactions_key("c")
        await cache.set(key, [], ttl=300)

        await request_handler.create_request("c", Decimal("200"), BANK)

        assert await cache.get(key) is None

    @pytest.mark.asyncio
    async def test_min_withdrawal_amount(self, request_handler):
        """The configured minimum is exposed."""
        assert await request_handler.get_min_withdrawal_amount() == Decimal("100")


@pytest.mark.usefixtures("funded")
class TestWithdrawalLifecycle:
    """Test approval and rejection."""

    @pytest.mark.asyncio
    async def test_reject_refunds(self, session, request_handler, lifecycle):
        """Rejection restores the balance and logs a refund."""
        request = await request_handler.create_request("c", Decimal("500"), BANK)

        rejected = await lifecycle.reject_withdrawal(request.id, "a", "Wrong IFSC")

        assert rejected.status == WithdrawalStatus.REJECTED.value
        assert rejected.processed_by == "a"
        assert rejected.remarks == "Wrong IFSC"
        assert (await wallet_of(session, "c")).balance == Decimal("1000.00")

        withdrawal_tx, refund_tx = await transactions_of(session, "c")
        assert withdrawal_tx.status == TransactionStatus.FAILED.value
        assert refund_tx.type == TransactionType.REFUND.value
        assert refund_tx.status == TransactionStatus.COMPLETED.value
        assert refund_tx.amount == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_approve_keeps_debit(self, session, request_handler, lifecycle):
        """Approval completes the entry and counts the payout."""
        request = await request_handler.create_request("c", Decimal("500"), BANK)

        approved = await lifecycle.approve_withdrawal(
            request.id, "a", external_transaction_id="UTR123"
        )

        assert approved.status == WithdrawalStatus.APPROVED.value
        assert approved.external_transaction_id == "UTR123"
        assert approved.processed_at is not None
        wallet = await wallet_of(session, "c")
        assert wallet.balance == Decimal("500.00")
        assert wallet.total_withdrawals == Decimal("500.00")

        [tx] = await transactions_of(session, "c")
        assert tx.status == TransactionStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_processed_request_is_final(self, request_handler, lifecycle):
        """A request can be decided only once."""
        request = await request_handler.create_request("c", Decimal("500"), BANK)
        request_id = request.id
        await lifecycle.approve_withdrawal(request_id, "a")

        with pytest.raises(InvalidStateTransitionError):
            await lifecycle.reject_withdrawal(request_id, "a")
        with pytest.raises(InvalidStateTransitionError):
            await lifecycle.approve_withdrawal(request_id, "a")

    @pytest.mark.asyncio
    async def test_non_admin_cannot_decide(self, session, request_handler, lifecycle):
        """Only admins approve or reject."""
        request = await request_handler.create_request("c", Decimal("500"), BANK)
        request_id = request.id

        with pytest.raises(PermissionDeniedError):
            await lifecycle.approve_withdrawal(request_id, "c")

        stored = await session.get(WithdrawalRequest, request_id)
        await session.refresh(stored)
        assert stored.status == WithdrawalStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_queries(self, request_handler, lifecycle, session):
        """Users see their own requests; admins see all with names."""
        first = await request_handler.create_request("c", Decimal("200"), BANK)
        await request_handler.create_request("c", Decimal("300"), BANK)
        await lifecycle.approve_withdrawal(first.id, "a")
        queries = WithdrawalQueryService(session)

        mine = await queries.get_user_withdrawals("c")
        pending = await queries.get_all_withdrawals(
            "a", status=WithdrawalStatus.PENDING
        )

        assert len(mine) == 2
        assert [row["amount"] for row in pending] == [Decimal("300.00")]
        assert pending[0]["user_name"] == "User c"
        assert pending[0]["user_email"] == "c@example.com"
        assert (await queries.get_withdrawal_by_id(first.id)).is_pending is False

        with pytest.raises(PermissionDeniedError):
            await queries.get_all_withdrawals("c")
