"""
Repositories.

Data access layer over the async SQLAlchemy session.
"""

from mlm_app.repositories.base import BaseRepository
from mlm_app.repositories.notification_repository import NotificationRepository
from mlm_app.repositories.referral_repository import EdgeRow, ReferralRepository
from mlm_app.repositories.system_settings_repository import SystemSettingsRepository
from mlm_app.repositories.transaction_repository import TransactionRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.repositories.wallet_repository import WalletRepository
from mlm_app.repositories.withdrawal_repository import WithdrawalRepository

__all__ = [
    "BaseRepository",
    "EdgeRow",
    "NotificationRepository",
    "ReferralRepository",
    "SystemSettingsRepository",
    "TransactionRepository",
    "UserRepository",
    "WalletRepository",
    "WithdrawalRepository",
]
