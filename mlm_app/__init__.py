"""
User service module.

Structure:
- core.py: User retrieval and the shared admin check
- registration.py: Registration under a sponsor, referral links, root admin
- admin.py: Status and role management (no deletes)

Usage:
    from mlm_app.services.user import UserService

    user_service = UserService(session, cache)
    user = await user_service.register_user(uid, name, email, sponsor_code)
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.services.user.admin import UserAdminMixin
from mlm_app.services.user.core import UserServiceCore, require_admin
from mlm_app.services.user.registration import (
    UserRegistrationMixin,
    build_referral_link,
    generate_referral_code,
    parse_referral_link,
)
from mlm_app.utils.cache import CacheService


class UserService(
    UserServiceCore,
    UserRegistrationMixin,
    UserAdminMixin,
):
    """
    Combined user service.

    Inherits from all user service mixins to provide complete functionality.
    """

    def __init__(
        self, session: AsyncSession, cache: CacheService | None = None
    ) -> None:
        """
        Initialize user service with all mixins.

        Args:
            session: Database session
            cache: Cache service for downline invalidation
        """
        # Initialize all parent classes
        UserServiceCore.__init__(self, session)
        UserRegistrationMixin.__init__(self, session, cache)
        UserAdminMixin.__init__(self, session)


__all__ = [
    "UserService",
    "build_referral_link",
    "generate_referral_code",
    "parse_referral_link",
    "require_admin",
]
