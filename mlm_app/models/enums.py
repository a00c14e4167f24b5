"""
Model enums.

Values are stored as plain strings so the rows stay readable from any client.
"""

from enum import StrEnum


class UserStatus(StrEnum):
    """Account status. Users are never deleted, only moved between these."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class TransactionType(StrEnum):
    """Ledger entry type."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    LEVEL_INCOME = "level_income"
    SPONSOR_INCOME = "sponsor_income"
    PROFIT_SHARE = "profit_share"
    REFUND = "refund"


class TransactionStatus(StrEnum):
    """Ledger entry status. COMPLETED and FAILED are terminal."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WithdrawalStatus(StrEnum):
    """Withdrawal request status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(StrEnum):
    """In-app notification severity."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# Commission transaction types, each with its own income accumulator
COMMISSION_TYPES = (
    TransactionType.LEVEL_INCOME,
    TransactionType.SPONSOR_INCOME,
    TransactionType.PROFIT_SHARE,
)
