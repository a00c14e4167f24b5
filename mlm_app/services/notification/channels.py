"""
Notification delivery channels.

Email goes through SMTP in a worker thread, SMS through the messaging
provider's REST API, and in-app notifications are rows in the store.
"""

import asyncio
import smtplib
from email.message import EmailMessage

import aiohttp
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.config.settings import Settings
from mlm_app.models.enums import NotificationType
from mlm_app.models.notification import Notification
from mlm_app.repositories.notification_repository import NotificationRepository
from mlm_app.repositories.user_repository import UserRepository


class EmailChannel:
    """SMTP email sender."""

    def __init__(self, config: Settings) -> None:
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.user = config.smtp_user
        self.password = config.smtp_password
        self.use_tls = config.smtp_use_tls
        self.sender = config.email_from

    def _send_sync(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.user and self.password:
                smtp.login(self.user, self.password)
            smtp.send_message(message)

    async def send(self, to: str, subject: str, body: str) -> None:
        """Send one email without blocking the event loop."""
        await asyncio.to_thread(self._send_sync, to, subject, body)
        logger.debug("Email sent", extra={"to": to, "subject": subject})


class SmsChannel:
    """SMS sender over the provider's Messages REST endpoint."""

    def __init__(self, config: Settings, timeout: float = 15.0) -> None:
        self.api_url = config.sms_api_url.rstrip("/")
        self.account_sid = config.sms_account_sid
        self.auth_token = config.sms_auth_token
        self.from_number = config.sms_from_number
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def send(self, to: str, body: str) -> None:
        """
        Send one SMS.

        Raises:
            aiohttp.ClientError: On transport failure or non-2xx response
        """
        url = f"{self.api_url}/Accounts/{self.account_sid}/Messages.json"
        auth = aiohttp.BasicAuth(self.account_sid, self.auth_token)
        data = {"To": to, "From": self.from_number, "Body": body}

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(url, data=data, auth=auth) as response:
                response.raise_for_status()

        logger.debug("SMS sent", extra={"to": to})


class InAppChannel:
    """Dashboard inbox notifications stored next to the user."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.notification_repo = NotificationRepository(session)
        self.user_repo = UserRepository(session)

    async def send(
        self,
        user_id: str,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.INFO,
        link: str | None = None,
    ) -> Notification:
        """
        Store a notification and bump the user's unread counter.

        Runs in a savepoint: a failure undoes only the notification rows and
        leaves the caller's transaction and loaded objects alone. The caller
        commits.
        """
        async with self.session.begin_nested():
            notification = await self.notification_repo.create(
                user_id=user_id,
                title=title,
                message=message,
                type=notification_type.value,
                link=link,
            )
            await self.user_repo.increment(user_id, unread_notifications=1)
        return notification
