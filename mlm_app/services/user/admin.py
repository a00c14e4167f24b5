"""
User administration functionality.

Status and role changes by administrators. Users are never deleted.
"""

from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.enums import UserStatus
from mlm_app.models.user import User
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.services.user.core import require_admin
from mlm_app.utils.db_decorators import with_auto_commit
from mlm_app.utils.exceptions import NotFoundError, ValidationError


class UserAdminMixin:
    """Mixin for admin-only user management."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user admin mixin."""
        self.session = session
        self.user_repo = UserRepository(session)

    @with_auto_commit
    async def set_status(
        self, admin_id: str, user_id: str, status: UserStatus | str
    ) -> User:
        """
        Move a user to another status (active / suspended / banned).

        Raises:
            PermissionDeniedError: Actor is not an admin
            NotFoundError: User does not exist
            ValidationError: Unknown status, or an admin locking itself out
        """
        await require_admin(self.user_repo, admin_id)
        try:
            new_status = UserStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown status: {status}") from e

        if user_id == admin_id and new_status != UserStatus.ACTIVE:
            raise ValidationError("Administrators cannot deactivate themselves")

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)

        previous = user.status
        user.status = new_status.value
        await self.session.flush()

        logger.info(
            "User status changed",
            extra={
                "admin_id": admin_id,
                "user_id": user_id,
                "from_status": previous,
                "to_status": new_status.value,
            },
        )
        return user

    @with_auto_commit
    async def set_admin(self, admin_id: str, user_id: str, is_admin: bool) -> User:
        """
        Grant or revoke the admin flag.

        Raises:
            PermissionDeniedError: Actor is not an admin
            NotFoundError: User does not exist
            ValidationError: An admin revoking its own flag
        """
        await require_admin(self.user_repo, admin_id)
        if user_id == admin_id and not is_admin:
            raise ValidationError("Administrators cannot revoke their own role")

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)

        user.is_admin = is_admin
        await self.session.flush()

        logger.info(
            "User admin flag changed",
            extra={"admin_id": admin_id, "user_id": user_id, "is_admin": is_admin},
        )
        return user

    async def list_users(
        self, admin_id: str, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """
        List users newest first with their sponsor's name.

        Raises:
            PermissionDeniedError: Actor is not an admin
        """
        await require_admin(self.user_repo, admin_id)
        rows = await self.user_repo.list_with_sponsor_names(limit)
        return [
            {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "referral_code": user.referral_code,
                "sponsor_id": user.sponsor_id,
                "sponsor_name": sponsor_name,
                "direct_referrals": user.direct_referrals,
                "total_team_size": user.total_team_size,
                "total_income": user.total_income,
                "status": user.status,
                "is_admin": user.is_admin,
                "created_at": user.created_at,
            }
            for user, sponsor_name in rows
        ]
