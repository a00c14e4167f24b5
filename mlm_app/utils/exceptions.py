"""
Exception handling utilities.

Defines the error taxonomy used across services and categorized exception
types for proper error handling.
"""

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import OperationalError


class MLMError(Exception):
    """Base class for errors raised by the referral backend."""

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


# (a) Validation errors: rejected before any state change

class ValidationError(MLMError):
    """Input failed validation."""


class InvalidSponsorError(ValidationError):
    """Sponsor referral code or id does not resolve to an eligible user."""


class AmountBelowMinimumError(ValidationError):
    """Amount is below the configured minimum."""


class ReferralCycleError(ValidationError):
    """Edge would make a user its own ancestor."""


class DuplicateReferralError(ValidationError):
    """User already has a sponsor."""


class InvalidStateTransitionError(ValidationError):
    """Entity is not in a state that allows the requested transition."""


class PermissionDeniedError(MLMError):
    """Actor is not allowed to perform the operation."""


# (b) Not-found errors

class NotFoundError(MLMError):
    """Referenced entity does not exist."""


# (c) Transient remote-access errors

class TransientStoreError(MLMError):
    """Store kept failing after all retry attempts."""


# (d) Financial-consistency errors

class InsufficientBalanceError(MLMError):
    """Wallet balance does not cover the debit."""


# External collaborators

class PaymentGatewayError(MLMError):
    """Payment gateway call failed."""


class PaymentVerificationError(MLMError):
    """Payment signature did not verify."""


# Exception categories based on handling strategy

# Worth retrying with backoff
TRANSIENT_ERRORS = (
    OperationalError,     # Lost connection, lock timeout, quota
    TimeoutError,
    ConnectionError,
    RedisConnectionError,
    RedisTimeoutError,
)

# Must raise - rejected synchronously to the caller
MUST_RAISE = (
    ValidationError,
    PermissionDeniedError,
    InsufficientBalanceError,
    PaymentVerificationError,
)


def is_transient(exc: BaseException) -> bool:
    """
    Check if exception is a transient remote-access failure.

    Args:
        exc: Exception to check

    Returns:
        True if the operation may succeed when retried
    """
    return isinstance(exc, TRANSIENT_ERRORS)


def must_raise(exc: BaseException) -> bool:
    """
    Check if exception must be surfaced to the caller.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be raised
    """
    return isinstance(exc, MUST_RAISE)
