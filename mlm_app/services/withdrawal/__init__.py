"""
Withdrawal services package.

This package provides modular withdrawal management functionality:
- withdrawal_balance_manager: Conditional debit and refund of wallet balance
- withdrawal_request_handler: Withdrawal request creation
- withdrawal_lifecycle_handler: Approval and rejection
- withdrawal_query_service: Queries and history

All components are re-exported for easy importing.
"""

from mlm_app.services.withdrawal.withdrawal_balance_manager import (
    WithdrawalBalanceManager,
)
from mlm_app.services.withdrawal.withdrawal_lifecycle_handler import (
    WithdrawalLifecycleHandler,
)
from mlm_app.services.withdrawal.withdrawal_query_service import (
    WithdrawalQueryService,
)
from mlm_app.services.withdrawal.withdrawal_request_handler import (
    BankDetails,
    WithdrawalRequestHandler,
)

__all__ = [
    "BankDetails",
    "WithdrawalBalanceManager",
    "WithdrawalLifecycleHandler",
    "WithdrawalQueryService",
    "WithdrawalRequestHandler",
]
