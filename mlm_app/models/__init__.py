"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from mlm_app.models.base import Base
from mlm_app.models.enums import (
    COMMISSION_TYPES,
    NotificationType,
    TransactionStatus,
    TransactionType,
    UserStatus,
    WithdrawalStatus,
)
from mlm_app.models.notification import Notification
from mlm_app.models.referral import ReferralEdge
from mlm_app.models.system_settings import SystemSettings
from mlm_app.models.transaction import Transaction

# Core Models
from mlm_app.models.user import User
from mlm_app.models.wallet import Wallet
from mlm_app.models.withdrawal_request import WithdrawalRequest

__all__ = [
    # Base
    "Base",
    # Enums
    "COMMISSION_TYPES",
    "NotificationType",
    "TransactionStatus",
    "TransactionType",
    "UserStatus",
    "WithdrawalStatus",
    # Core Models
    "User",
    "ReferralEdge",
    "Wallet",
    "Transaction",
    "WithdrawalRequest",
    # System Models
    "SystemSettings",
    "Notification",
]
