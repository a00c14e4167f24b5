"""
Integration tests for notifications.

Covers:
- In-app notifications and unread counters
- Email and SMS failures never failing the caller
- Withdrawal and transaction messages
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from mlm_app.models import (
    Notification,
    NotificationType,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    Wallet,
    WithdrawalRequest,
    WithdrawalStatus,
)
from mlm_app.services.deposit_service import DepositService
from mlm_app.services.notification import NotificationService
from mlm_app.services.withdrawal import (
    BankDetails,
    WithdrawalLifecycleHandler,
    WithdrawalRequestHandler,
)


async def unread_of(session, user_id: str) -> int:
    user = await session.get(User, user_id)
    await session.refresh(user)
    return user.unread_notifications


class TestInAppNotifications:
    """Test the dashboard inbox."""

    @pytest.mark.asyncio
    async def test_notify_and_mark_read(self, session, factory):
        """Unread counter follows the inbox."""
        user = await factory.user("u", phone="+919999999999")
        service = NotificationService(session)

        delivered = await service.notify_user(
            user, "Welcome", "Hello there", NotificationType.SUCCESS
        )

        assert delivered == 1
        assert await unread_of(session, "u") == 1
        [notification] = await service.get_notifications("u", unread_only=True)
        assert notification.title == "Welcome"
        assert notification.type == NotificationType.SUCCESS.value

        assert await service.mark_read("u", notification.id) is True
        assert await unread_of(session, "u") == 0
        assert await service.get_notifications("u", unread_only=True) == []

    @pytest.mark.asyncio
    async def test_mark_read_twice_or_foreign(self, session, factory):
        """Marking someone else's or an already read notification is a no-op."""
        user = await factory.user("u")
        await factory.user("v")
        service = NotificationService(session)
        await service.notify_user(user, "Hi", "Hello")
        [notification] = await service.get_notifications("u")

        assert await service.mark_read("v", notification.id) is False
        assert await service.mark_read("u", notification.id) is True
        assert await service.mark_read("u", notification.id) is False
        assert await unread_of(session, "u") == 0


class TestDeliveryFailures:
    """Test that channel failures are swallowed."""

    @pytest.mark.asyncio
    async def test_email_and_sms_failures_logged(self, session, factory):
        """Failing external channels do not raise; in-app still delivers."""
        user = await factory.user("u", phone="+919999999999")
        email = AsyncMock()
        email.send = AsyncMock(side_effect=ConnectionRefusedError("smtp down"))
        sms = AsyncMock()
        sms.send = AsyncMock(side_effect=TimeoutError())
        service = NotificationService(session, email_channel=email, sms_channel=sms)

        delivered = await service.notify_user(user, "Title", "Body")

        assert delivered == 3
        assert await service.drain() == 0
        email.send.assert_awaited_once_with("u@example.com", "Title", "Body")
        sms.send.assert_awaited_once_with("+919999999999", "Title: Body")
        assert await unread_of(session, "u") == 1

    @pytest.mark.asyncio
    async def test_all_channels_deliver(self, session, factory):
        """Each working channel counts once."""
        user = await factory.user("u", phone="+919999999999")
        email = AsyncMock()
        sms = AsyncMock()
        service = NotificationService(session, email_channel=email, sms_channel=sms)

        assert await service.notify_user(user, "Title", "Body") == 3
        assert await service.drain() == 2

    @pytest.mark.asyncio
    async def test_in_app_failure_swallowed(self, session, factory):
        """A failing store write is logged, not raised."""
        user = await factory.user("u")
        await session.commit()
        service = NotificationService(session)
        service.in_app.send = AsyncMock(side_effect=RuntimeError("store down"))

        assert await service.notify_user(user, "Title", "Body") == 0

    @pytest.mark.asyncio
    async def test_unknown_user_skipped(self, session):
        """Transactions of unknown users notify nobody."""
        transaction = Transaction(
            id=1,
            user_id="ghost",
            type=TransactionType.DEPOSIT.value,
            amount=Decimal("10"),
            status=TransactionStatus.COMPLETED.value,
            description="",
        )

        assert await NotificationService(session).notify_transaction(transaction) is False


class TestEventMessages:
    """Test messages for financial events."""

    @pytest.mark.asyncio
    async def test_pending_withdrawal_alerts_admins(self, session, factory):
        """Requester and admins hear about a new request."""
        await factory.user("a", is_admin=True)
        await factory.user("c", "a")
        request = WithdrawalRequest(
            id=5,
            user_id="c",
            amount=Decimal("500"),
            account_name="C",
            account_number="123456",
            ifsc_code="HDFC0001234",
            bank_name="HDFC Bank",
            status=WithdrawalStatus.PENDING.value,
        )
        service = NotificationService(session)

        assert await service.notify_withdrawal(request) is True

        [mine] = await service.get_notifications("c")
        [alert] = await service.get_notifications("a")
        assert mine.title == "Withdrawal requested"
        assert alert.title == "New withdrawal request"
        assert "HDFC Bank" in alert.message

    @pytest.mark.asyncio
    async def test_rejected_withdrawal_message(self, session, factory):
        """Rejection tells the user why and does not alert admins."""
        await factory.user("a", is_admin=True)
        await factory.user("c", "a")
        request = WithdrawalRequest(
            id=6,
            user_id="c",
            amount=Decimal("500"),
            account_name="C",
            account_number="123456",
            ifsc_code="HDFC0001234",
            bank_name="HDFC Bank",
            status=WithdrawalStatus.REJECTED.value,
            remarks="Name mismatch",
        )
        service = NotificationService(session)

        await service.notify_withdrawal(request)

        [mine] = await service.get_notifications("c")
        assert mine.title == "Withdrawal rejected"
        assert mine.type == NotificationType.WARNING.value
        assert "Name mismatch" in mine.message
        assert await service.get_notifications("a") == []

    @pytest.mark.asyncio
    async def test_commission_message(self, session, factory):
        """Commission credits are announced as successes."""
        await factory.user("b")
        transaction = Transaction(
            id=9,
            user_id="b",
            type=TransactionType.SPONSOR_INCOME.value,
            amount=Decimal("100.00"),
            status=TransactionStatus.COMPLETED.value,
            description="Sponsor commission from User c's deposit",
        )

        assert await NotificationService(session).notify_transaction(transaction) is True

        [notification] = await NotificationService(session).get_notifications("b")
        assert notification.title == "Sponsor income completed"
        assert notification.type == NotificationType.SUCCESS.value
        assert "100.00" in notification.message


class TestBackgroundDelivery:
    """Test that external channels do not hold up the caller."""

    @pytest.mark.asyncio
    async def test_slow_email_does_not_block(self, session, factory):
        """notify_user returns while the email is still being sent."""
        user = await factory.user("u")
        release = asyncio.Event()

        async def slow_send(to, subject, body):
            await release.wait()

        email = AsyncMock()
        email.send = AsyncMock(side_effect=slow_send)
        service = NotificationService(session, email_channel=email)

        assert await service.notify_user(user, "Title", "Body") == 2
        assert len(service._pending) == 1

        release.set()
        assert await service.drain() == 1
        assert not service._pending


def broken_in_app(service: NotificationService) -> NotificationService:
    """Make every in-app write fail halfway, after the row insert."""
    service.in_app.user_repo.increment = AsyncMock(
        side_effect=OperationalError("UPDATE users", {}, Exception("database is locked"))
    )
    return service


class TestNotificationFailureAfterCommit:
    """Test that committed money movements survive notification failures."""

    @pytest.mark.asyncio
    async def test_deposit_approval_survives(self, session, factory):
        """The deposit settles and the caller gets the result."""
        await factory.settings(level_commissions=[{"level": 1, "percentage": "5"}])
        await factory.user("a", is_admin=True)
        await factory.user("b", "a")
        await session.commit()
        notifier = broken_in_app(NotificationService(session))
        deposits = DepositService(session, notifier=notifier)
        order = await deposits.create_deposit_order("b", Decimal("1000"))

        result = await deposits.approve_deposit(order.transaction.id, "a")

        assert result.transaction.status == TransactionStatus.COMPLETED.value
        assert result.commissions.level_income_total == Decimal("50.00")
        wallet = await session.get(Wallet, "b")
        await session.refresh(wallet)
        assert wallet.balance == Decimal("1000.00")
        rows = (await session.execute(select(Notification))).scalars().all()
        assert rows == []

    @pytest.mark.asyncio
    async def test_withdrawal_approval_survives(self, session, factory):
        """The approval stays committed and is returned."""
        await factory.settings()
        await factory.user("a", is_admin=True)
        await factory.user("c", "a", balance="1000")
        await session.commit()
        request = await WithdrawalRequestHandler(session).create_request(
            "c",
            Decimal("500"),
            BankDetails(
                account_name="C",
                account_number="1234567",
                ifsc_code="HDFC0001234",
                bank_name="HDFC Bank",
            ),
        )
        request_id = request.id
        notifier = broken_in_app(NotificationService(session))

        approved = await WithdrawalLifecycleHandler(
            session, notifier=notifier
        ).approve_withdrawal(request_id, "a")

        assert approved.id == request_id
        assert approved.status == WithdrawalStatus.APPROVED.value
        stored = await session.get(WithdrawalRequest, request_id)
        await session.refresh(stored)
        assert stored.status == WithdrawalStatus.APPROVED.value
        assert await unread_of(session, "c") == 0

    @pytest.mark.asyncio
    async def test_notifier_crash_is_contained(self, session, factory):
        """Even an unexpected notifier error does not reach the caller."""
        await factory.user("a", is_admin=True)
        await factory.user("c", "a", balance="1000")
        await session.commit()
        notifier = AsyncMock()
        notifier.notify_withdrawal = AsyncMock(side_effect=RuntimeError("boom"))

        request = await WithdrawalRequestHandler(
            session, notifier=notifier
        ).create_request(
            "c",
            Decimal("200"),
            BankDetails(
                account_name="C",
                account_number="1234567",
                ifsc_code="HDFC0001234",
                bank_name="HDFC Bank",
            ),
        )

        assert request.status == WithdrawalStatus.PENDING.value
        notifier.notify_withdrawal.assert_awaited_once()
