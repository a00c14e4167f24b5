"""
Core user service functionality.

Handles basic user retrieval and the admin check shared by admin paths.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.user import User
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.utils.exceptions import NotFoundError, PermissionDeniedError


async def require_admin(user_repo: UserRepository, admin_id: str) -> User:
    """
    Resolve an acting administrator.

    Raises:
        PermissionDeniedError: Actor missing, not an admin, or not active
    """
    admin = await user_repo.get_by_id(admin_id)
    if admin is None or not admin.is_admin or not admin.is_active:
        raise PermissionDeniedError(
            "Administrator privileges required", actor_id=admin_id
        )
    return admin


class UserServiceCore:
    """
    Core user service.

    Provides basic user retrieval methods.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize user service core.

        Args:
            session: Database session
        """
        self.session = session
        self.user_repo = UserRepository(session)

    async def get_by_id(self, user_id: str) -> User | None:
        """
        Get user by ID.

        Args:
            user_id: User ID

        Returns:
            User or None
        """
        return await self.user_repo.get_by_id(user_id)

    async def get_required(self, user_id: str) -> User:
        """
        Get user by ID or fail.

        Raises:
            NotFoundError: If user does not exist
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)
        return user

    async def get_by_referral_code(self, referral_code: str) -> User | None:
        """
        Get user by referral code.

        Args:
            referral_code: Referral code

        Returns:
            User or None
        """
        return await self.user_repo.get_by_referral_code(referral_code.strip().upper())
