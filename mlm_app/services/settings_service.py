"""
System settings service.

Reads and updates the commission/limit singleton. Only administrators may
change it.
"""

from decimal import Decimal
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.system_settings import SystemSettings
from mlm_app.repositories.system_settings_repository import SystemSettingsRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.services.user.core import require_admin
from mlm_app.utils.db_decorators import with_auto_commit
from mlm_app.utils.exceptions import NotFoundError, ValidationError


class LevelCommissionTier(BaseModel):
    """Commission percentage paid to the ancestor at one level."""

    level: int = Field(ge=1)
    percentage: Decimal = Field(ge=0, le=100)


class SystemSettingsUpdate(BaseModel):
    """Partial update of system settings; unset fields are left alone."""

    model_config = ConfigDict(extra="forbid")

    sponsor_commission_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    profit_share_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    level_commissions: list[LevelCommissionTier] | None = None
    min_deposit_amount: Decimal | None = Field(default=None, ge=0)
    min_withdrawal_amount: Decimal | None = Field(default=None, ge=0)
    max_withdrawal_amount: Decimal | None = Field(default=None, ge=0)
    profit_pool_user_id: str | None = None
    admin_account_name: str | None = None
    admin_account_number: str | None = None
    admin_bank_name: str | None = None
    admin_ifsc_code: str | None = None
    admin_upi_id: str | None = None

    @field_validator("level_commissions")
    @classmethod
    def validate_tiers(
        cls, v: list[LevelCommissionTier] | None
    ) -> list[LevelCommissionTier] | None:
        """Levels must be unique and contiguous from 1."""
        if v is None:
            return v
        ordered = sorted(v, key=lambda tier: tier.level)
        levels = [tier.level for tier in ordered]
        if levels != list(range(1, len(levels) + 1)):
            raise ValueError(
                f"Commission levels must be unique and start at 1 without gaps, got {levels}"
            )
        return ordered

    @model_validator(mode="after")
    def validate_withdrawal_bounds(self) -> "SystemSettingsUpdate":
        if (
            self.min_withdrawal_amount is not None
            and self.max_withdrawal_amount is not None
            and self.max_withdrawal_amount < self.min_withdrawal_amount
        ):
            raise ValueError("max_withdrawal_amount must not be below min_withdrawal_amount")
        return self


class SystemSettingsService:
    """Service for the system settings singleton."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize settings service."""
        self.session = session
        self.settings_repo = SystemSettingsRepository(session)
        self.user_repo = UserRepository(session)

    async def get_settings(self) -> SystemSettings:
        """
        Get system settings, creating the default row on first read.

        Returns:
            SystemSettings singleton
        """
        existing = await self.settings_repo.get_settings()
        if existing is not None:
            return existing

        created = await self.settings_repo.get_or_create()
        await self.session.commit()
        return created

    @with_auto_commit
    async def update_settings(
        self, admin_id: str, update: SystemSettingsUpdate
    ) -> SystemSettings:
        """
        Apply an admin's settings change.

        Args:
            admin_id: Acting administrator
            update: Fields to change

        Returns:
            Updated settings

        Raises:
            PermissionDeniedError: Actor is not an admin
            NotFoundError: profit_pool_user_id does not resolve to a user
            ValidationError: Resulting withdrawal bounds are inconsistent
        """
        await require_admin(self.user_repo, admin_id)
        row = await self.settings_repo.get_or_create()
        changes: dict[str, Any] = update.model_dump(exclude_unset=True)

        if changes.get("profit_pool_user_id"):
            if await self.user_repo.get_by_id(changes["profit_pool_user_id"]) is None:
                raise NotFoundError(
                    "Profit pool user not found",
                    user_id=changes["profit_pool_user_id"],
                )

        min_withdrawal = changes.get("min_withdrawal_amount", row.min_withdrawal_amount)
        max_withdrawal = changes.get("max_withdrawal_amount", row.max_withdrawal_amount)
        if max_withdrawal is not None and max_withdrawal < min_withdrawal:
            raise ValidationError(
                "max_withdrawal_amount must not be below min_withdrawal_amount",
                min_withdrawal_amount=str(min_withdrawal),
                max_withdrawal_amount=str(max_withdrawal),
            )

        if "level_commissions" in changes:
            # JSON column: percentages kept as strings to stay exact
            changes["level_commissions"] = [
                {"level": tier.level, "percentage": str(tier.percentage)}
                for tier in update.level_commissions or []
            ]

        for key, value in changes.items():
            setattr(row, key, value)
        row.updated_by = admin_id
        await self.session.flush()

        logger.info(
            "System settings updated",
            extra={"admin_id": admin_id, "fields": sorted(changes)},
        )
        return row
