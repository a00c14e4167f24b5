"""
System settings repository.

Data access layer for the SystemSettings singleton.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.config.constants import (
    DEFAULT_LEVEL_COMMISSIONS,
    DEFAULT_MIN_DEPOSIT_AMOUNT,
    DEFAULT_MIN_WITHDRAWAL_AMOUNT,
    DEFAULT_PROFIT_SHARE_PERCENTAGE,
    DEFAULT_SPONSOR_COMMISSION_PERCENTAGE,
    SYSTEM_SETTINGS_ID,
)
from mlm_app.models.system_settings import SystemSettings
from mlm_app.repositories.base import BaseRepository


class SystemSettingsRepository(BaseRepository[SystemSettings]):
    """Repository for the single settings row."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize system settings repository."""
        super().__init__(SystemSettings, session)

    async def get_settings(self) -> SystemSettings | None:
        """Get the settings row if it has been created."""
        return await self.get_by_id(SYSTEM_SETTINGS_ID)

    async def get_or_create(self) -> SystemSettings:
        """
        Get the settings row, seeding defaults on first read.

        Returns:
            SystemSettings singleton
        """
        row = await self.get_settings()
        if row is not None:
            return row

        logger.info("System settings not found, creating defaults")
        return await self.create(
            id=SYSTEM_SETTINGS_ID,
            sponsor_commission_percentage=DEFAULT_SPONSOR_COMMISSION_PERCENTAGE,
            profit_share_percentage=DEFAULT_PROFIT_SHARE_PERCENTAGE,
            level_commissions=[dict(tier) for tier in DEFAULT_LEVEL_COMMISSIONS],
            min_deposit_amount=DEFAULT_MIN_DEPOSIT_AMOUNT,
            min_withdrawal_amount=DEFAULT_MIN_WITHDRAWAL_AMOUNT,
        )
