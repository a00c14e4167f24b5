"""
Services.

Business logic layer.
"""

from mlm_app.services.dashboard_service import DashboardService
from mlm_app.services.deposit_service import (
    DepositOrder,
    DepositResult,
    DepositService,
)
from mlm_app.services.notification import NotificationService
from mlm_app.services.payment import PaymentGatewayClient
from mlm_app.services.referral_service import ReferralService
from mlm_app.services.settings_service import (
    LevelCommissionTier,
    SystemSettingsService,
    SystemSettingsUpdate,
)
from mlm_app.services.transaction_service import (
    TransactionRecord,
    TransactionService,
)
from mlm_app.services.user import UserService
from mlm_app.services.withdrawal import (
    BankDetails,
    WithdrawalLifecycleHandler,
    WithdrawalQueryService,
    WithdrawalRequestHandler,
)

__all__ = [
    "BankDetails",
    "DashboardService",
    "DepositOrder",
    "DepositResult",
    "DepositService",
    "LevelCommissionTier",
    "NotificationService",
    "PaymentGatewayClient",
    "ReferralService",
    "SystemSettingsService",
    "SystemSettingsUpdate",
    "TransactionRecord",
    "TransactionService",
    "UserService",
    "WithdrawalLifecycleHandler",
    "WithdrawalQueryService",
    "WithdrawalRequestHandler",
]
