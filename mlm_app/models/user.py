"""
User model.

Represents a registered member of the referral network.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DECIMAL,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_app.models.base import Base
from mlm_app.models.enums import UserStatus

if TYPE_CHECKING:
    from mlm_app.models.wallet import Wallet


class User(Base):
    """User model - members of the referral network."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'direct_referrals >= 0', name='check_user_direct_referrals_non_negative'
        ),
        CheckConstraint(
            'total_team_size >= direct_referrals',
            name='check_user_team_size_covers_direct'
        ),
        CheckConstraint(
            'sponsor_id IS NULL OR sponsor_id <> id',
            name='check_user_not_own_sponsor'
        ),
    )

    # Primary key: uid issued by the identity provider
    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    # Profile
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Referral
    referral_code: Mapped[str] = mapped_column(
        String(32), unique=True, index=True, nullable=False
    )
    sponsor_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    sponsor_referral_code: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )

    # Team aggregates (written back by team-size recomputation)
    direct_referrals: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    total_team_size: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Income accumulators
    level_income: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )
    sponsor_income: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )
    profit_share: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), default=Decimal("0"), nullable=False
    )

    # Flags
    is_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=UserStatus.ACTIVE.value, nullable=False, index=True
    )
    unread_notifications: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )
    last_activity: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    sponsor: Mapped[Optional["User"]] = relationship(
        "User",
        remote_side=[id],
        foreign_keys=[sponsor_id],
    )
    wallet: Mapped[Optional["Wallet"]] = relationship(
        "Wallet", back_populates="user", uselist=False
    )

    @property
    def is_banned(self) -> bool:
        return self.status == UserStatus.BANNED.value

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def total_income(self) -> Decimal:
        """Sum of all commission accumulators."""
        return (
            (self.level_income or Decimal("0"))
            + (self.sponsor_income or Decimal("0"))
            + (self.profit_share or Decimal("0"))
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id!r}, referral_code={self.referral_code!r}, "
            f"sponsor_id={self.sponsor_id!r}, status={self.status})>"
        )
