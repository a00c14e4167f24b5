"""
System settings model.

Singleton row holding commission percentages and amount limits.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DECIMAL, JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_app.models.base import Base


class SystemSettings(Base):
    """Global commission and limit configuration (row id 1)."""

    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    sponsor_commission_percentage: Mapped[Decimal] = mapped_column(
        DECIMAL(5, 2), nullable=False
    )
    profit_share_percentage: Mapped[Decimal] = mapped_column(
        DECIMAL(5, 2), nullable=False
    )
    # Ordered list of {"level": int, "percentage": str}
    level_commissions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )

    min_deposit_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), nullable=False
    )
    min_withdrawal_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), nullable=False
    )
    max_withdrawal_amount: Mapped[Decimal | None] = mapped_column(
        DECIMAL(18, 2), nullable=True
    )

    # Profit share recipient; falls back to the root admin when unset
    profit_pool_user_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )

    # Admin bank details shown on deposit instructions
    admin_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin_account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    admin_bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin_ifsc_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    admin_upi_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    def get_level_tiers(self) -> dict[int, Decimal]:
        """
        Commission tiers as {level: percentage}.

        Returns:
            Mapping ordered by level
        """
        tiers = {
            int(tier["level"]): Decimal(str(tier["percentage"]))
            for tier in self.level_commissions or []
        }
        return dict(sorted(tiers.items()))

    @property
    def deepest_level(self) -> int:
        tiers = self.get_level_tiers()
        return max(tiers) if tiers else 0

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SystemSettings(sponsor={self.sponsor_commission_percentage}%, "
            f"profit_share={self.profit_share_percentage}%, "
            f"levels={self.level_commissions})>"
        )
