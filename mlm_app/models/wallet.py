"""
Wallet model.

Per-user balance and income breakdown.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DECIMAL, CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_app.models.base import Base

if TYPE_CHECKING:
    from mlm_app.models.user import User


class Wallet(Base):
    """Wallet model - one per user, keyed by user id."""

    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint('balance >= 0', name='check_wallet_balance_non_negative'),
        CheckConstraint(
            'total_invested >= 0', name='check_wallet_invested_non_negative'
        ),
        CheckConstraint(
            'total_withdrawals >= 0',
            name='check_wallet_withdrawals_non_negative'
        ),
    )

    user_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("users.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    balance: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )
    total_invested: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )
    total_income: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )
    total_withdrawals: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )
    level_income: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )
    sponsor_income: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )
    profit_share: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="wallet")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Wallet(user_id={self.user_id!r}, balance={self.balance})>"
