"""
Notification service.

Tells users (and admins) about committed financial events. Delivery
failures are logged and swallowed: by the time a notification is sent the
state change it describes is already committed.

In-app rows are written in a savepoint and committed right away. Email and
SMS are scheduled as background tasks so a slow SMTP server or messaging
API never holds up the financial operation; `drain()` waits for them.
"""

import asyncio
from collections.abc import Awaitable

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.config.settings import settings
from mlm_app.models.enums import (
    NotificationType,
    TransactionStatus,
    TransactionType,
    WithdrawalStatus,
)
from mlm_app.models.notification import Notification
from mlm_app.models.transaction import Transaction
from mlm_app.models.user import User
from mlm_app.models.withdrawal_request import WithdrawalRequest
from mlm_app.repositories.notification_repository import NotificationRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.services.notification.channels import (
    EmailChannel,
    InAppChannel,
    SmsChannel,
)

_TRANSACTION_TITLES = {
    TransactionType.DEPOSIT: "Deposit",
    TransactionType.WITHDRAWAL: "Withdrawal",
    TransactionType.LEVEL_INCOME: "Level income",
    TransactionType.SPONSOR_INCOME: "Sponsor income",
    TransactionType.PROFIT_SHARE: "Profit share",
    TransactionType.REFUND: "Refund",
}

_STATUS_TYPES = {
    TransactionStatus.PENDING: NotificationType.INFO,
    TransactionStatus.COMPLETED: NotificationType.SUCCESS,
    TransactionStatus.FAILED: NotificationType.ERROR,
}


class NotificationService:
    """Combined email, SMS and in-app notification service."""

    def __init__(
        self,
        session: AsyncSession,
        email_channel: EmailChannel | None = None,
        sms_channel: SmsChannel | None = None,
    ) -> None:
        """
        Initialize notification service.

        Args:
            session: Database session
            email_channel: Email sender (None = email disabled)
            sms_channel: SMS sender (None = SMS disabled)
        """
        self.session = session
        self.email_channel = email_channel
        self.sms_channel = sms_channel
        self.in_app = InAppChannel(session)
        self.user_repo = UserRepository(session)
        self.notification_repo = NotificationRepository(session)
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, session: AsyncSession) -> "NotificationService":
        """Build a service with every channel the configuration enables."""
        return cls(
            session,
            email_channel=EmailChannel(settings) if settings.email_enabled else None,
            sms_channel=SmsChannel(settings) if settings.sms_enabled else None,
        )

    async def notify_user(
        self,
        user: User,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.INFO,
        link: str | None = None,
    ) -> int:
        """
        Deliver one message through every available channel.

        Returns:
            Number of channels that took the message: the in-app inbox if
            the row was stored, plus each scheduled email or SMS delivery
        """
        user_id, email, phone = user.id, user.email, user.phone
        delivered = 0

        try:
            await self.in_app.send(user_id, title, message, notification_type, link)
            await self.session.commit()
            delivered += 1
        except Exception as e:
            logger.error(
                f"In-app notification failed: {e}",
                extra={"user_id": user_id, "title": title},
            )

        if self.email_channel is not None and email:
            self._schedule(
                "Email",
                self.email_channel.send(email, title, message),
                user_id,
                title,
            )
            delivered += 1

        if self.sms_channel is not None and phone:
            self._schedule(
                "SMS",
                self.sms_channel.send(phone, f"{title}: {message}"),
                user_id,
                title,
            )
            delivered += 1

        return delivered

    async def drain(self) -> int:
        """
        Wait for every scheduled email and SMS delivery.

        Returns:
            Number of deliveries that succeeded
        """
        if not self._pending:
            return 0
        results = await asyncio.gather(*list(self._pending))
        return sum(1 for ok in results if ok)

    def _schedule(
        self, channel: str, send: Awaitable[None], user_id: str, title: str
    ) -> None:
        task = asyncio.create_task(self._deliver(channel, send, user_id, title))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(
        self, channel: str, send: Awaitable[None], user_id: str, title: str
    ) -> bool:
        try:
            await send
        except Exception as e:
            logger.warning(
                f"{channel} notification failed: {e}",
                extra={"user_id": user_id, "title": title, "channel": channel},
            )
            return False
        return True

    async def notify_admins(
        self,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.INFO,
    ) -> int:
        """
        Send an alert copy to every admin.

        Returns:
            Number of admins notified through at least one channel
        """
        try:
            result = await self.session.execute(
                select(User).where(User.is_admin.is_(True))
            )
            admins = list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to load admins for notification: {e}")
            return 0

        notified = 0
        for admin in admins:
            try:
                if await self.notify_user(admin, title, message, notification_type):
                    notified += 1
            except Exception as e:
                logger.error(f"Admin notification failed: {e}")
        return notified

    async def notify_transaction(self, transaction: Transaction) -> bool:
        """
        Tell the owner about a transaction; admins also hear about deposits.

        Returns:
            True if the owner was reached through at least one channel
        """
        transaction_id = transaction.id
        owner_id = transaction.user_id
        tx_type = TransactionType(transaction.type)
        status = TransactionStatus(transaction.status)
        amount = transaction.amount
        description = transaction.description

        try:
            user = await self.user_repo.get_by_id(owner_id)
        except Exception as e:
            logger.error(
                f"Failed to resolve user for notification: {e}",
                extra={"transaction_id": transaction_id},
            )
            return False

        if user is None:
            logger.warning(
                "Notification skipped: user not found",
                extra={"transaction_id": transaction_id, "user_id": owner_id},
            )
            return False

        user_label = f"{user.name} ({user.email})"
        title = f"{_TRANSACTION_TITLES[tx_type]} {status.value}"
        message = f"{_TRANSACTION_TITLES[tx_type]} of {amount} is {status.value}."
        if description:
            message = f"{message} {description}"

        delivered = await self.notify_user(user, title, message, _STATUS_TYPES[status])

        if tx_type == TransactionType.DEPOSIT:
            await self.notify_admins(
                f"Deposit {status.value}",
                f"{user_label}: deposit of {amount} is {status.value}.",
            )

        return delivered > 0

    async def notify_withdrawal(self, request: WithdrawalRequest) -> bool:
        """
        Tell the requester about a withdrawal; admins hear about new requests.

        Returns:
            True if the requester was reached through at least one channel
        """
        request_id = request.id
        owner_id = request.user_id
        status = WithdrawalStatus(request.status)
        amount = request.amount
        bank = f"{request.bank_name} ({request.account_number})"
        reference = request.external_transaction_id
        remarks = request.remarks

        try:
            user = await self.user_repo.get_by_id(owner_id)
        except Exception as e:
            logger.error(
                f"Failed to resolve user for notification: {e}",
                extra={"withdrawal_request_id": request_id},
            )
            return False

        if user is None:
            logger.warning(
                "Notification skipped: user not found",
                extra={"withdrawal_request_id": request_id, "user_id": owner_id},
            )
            return False

        user_label = f"{user.name} ({user.email})"
        admin_message = f"{user_label} requested {amount} to {bank}."
        if status == WithdrawalStatus.PENDING:
            title = "Withdrawal requested"
            message = f"Your withdrawal of {amount} is awaiting approval."
            notification_type = NotificationType.INFO
        elif status == WithdrawalStatus.APPROVED:
            title = "Withdrawal approved"
            message = f"Your withdrawal of {amount} has been paid out."
            if reference:
                message = f"{message} Reference: {reference}."
            notification_type = NotificationType.SUCCESS
        else:
            title = "Withdrawal rejected"
            message = (
                f"Your withdrawal of {amount} was rejected and "
                f"the amount returned to your wallet."
            )
            if remarks:
                message = f"{message} Reason: {remarks}"
            notification_type = NotificationType.WARNING

        delivered = await self.notify_user(user, title, message, notification_type)

        if status == WithdrawalStatus.PENDING:
            await self.notify_admins(
                "New withdrawal request",
                admin_message,
                NotificationType.WARNING,
            )

        return delivered > 0

    async def get_notifications(
        self, user_id: str, unread_only: bool = False
    ) -> list[Notification]:
        """Get a user's inbox, newest first."""
        return await self.notification_repo.get_by_user(user_id, unread_only)

    async def mark_read(self, user_id: str, notification_id: int) -> bool:
        """
        Mark a notification as read and decrement the unread counter.

        Returns:
            False if it does not belong to the user or was already read
        """
        if not await self.notification_repo.mark_read(notification_id, user_id):
            return False

        user = await self.user_repo.get_by_id(user_id)
        if user is not None and user.unread_notifications > 0:
            await self.user_repo.increment(user_id, unread_notifications=-1)
        await self.session.commit()
        return True
