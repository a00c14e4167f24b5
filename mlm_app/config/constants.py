"""
Application constants.

Centralized constants for the application.
"""

from decimal import Decimal

# ========================================================================
# REFERRAL CONSTANTS
# ========================================================================

# Public sponsor handle shared as ?ref=<code>
REFERRAL_CODE_LENGTH = 16
REFERRAL_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
REFERRAL_CODE_MAX_ATTEMPTS = 10
REFERRAL_LINK_PARAM = "ref"

# Rows fetched per IN (...) query when loading a subtree level by level
SUBTREE_QUERY_CHUNK = 500

# ========================================================================
# MONEY
# ========================================================================

# Every credit/debit is rounded half-up to the smallest currency subunit
MONEY_QUANTUM = Decimal("0.01")
PERCENT_MIN = Decimal("0")
PERCENT_MAX = Decimal("100")

# Gateways take amounts in the smallest unit (paise for INR)
CURRENCY_SUBUNITS = 100

# ========================================================================
# CACHE CONSTANTS
# ========================================================================

DOWNLINE_CACHE_TTL_SECONDS = 300  # 5 minutes
TRANSACTION_CACHE_TTL_SECONDS = 300  # 5 minutes
LAST_KNOWN_CACHE_TTL_SECONDS = 86400  # 1 day

CACHE_KEY_DIRECT_DOWNLINE = "downline:direct:{user_id}"
CACHE_KEY_ALL_DOWNLINE = "downline:all:{user_id}"
CACHE_KEY_TRANSACTIONS = "transactions:user:{user_id}"
CACHE_KEY_LAST_KNOWN_PREFIX = "last_known:"

# ========================================================================
# RETRY CONSTANTS
# ========================================================================

STORE_MAX_RETRIES = 3  # Attempts before a transient read error surfaces
STORE_RETRY_BASE_DELAY = 0.5  # Seconds; doubles on every attempt

# ========================================================================
# DASHBOARD
# ========================================================================

DASHBOARD_RECENT_USERS = 10
DASHBOARD_RECENT_ITEMS = 5

# ========================================================================
# DEFAULT SYSTEM SETTINGS (first read of an empty store)
# ========================================================================

DEFAULT_SPONSOR_COMMISSION_PERCENTAGE = Decimal("10")
DEFAULT_PROFIT_SHARE_PERCENTAGE = Decimal("5")
DEFAULT_LEVEL_COMMISSIONS = [
    {"level": 1, "percentage": "5"},
    {"level": 2, "percentage": "3"},
    {"level": 3, "percentage": "2"},
]
DEFAULT_MIN_DEPOSIT_AMOUNT = Decimal("1000")
DEFAULT_MIN_WITHDRAWAL_AMOUNT = Decimal("500")

SYSTEM_SETTINGS_ID = 1
