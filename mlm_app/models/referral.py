"""
Referral edge model.

One row per direct sponsor -> referred relationship. Deeper levels are
derived by walking sponsor pointers, never stored.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mlm_app.models.base import Base

if TYPE_CHECKING:
    from mlm_app.models.user import User


class ReferralEdge(Base):
    """Immutable sponsor -> referred relationship created at registration."""

    __tablename__ = "referral_edges"
    __table_args__ = (
        CheckConstraint('level = 1', name='check_referral_edge_direct_only'),
        CheckConstraint(
            'sponsor_id <> referred_id', name='check_referral_edge_no_self'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    sponsor_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # A user has exactly one sponsor
    referred_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    sponsor: Mapped["User"] = relationship("User", foreign_keys=[sponsor_id])
    referred: Mapped["User"] = relationship("User", foreign_keys=[referred_id])

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralEdge(sponsor_id={self.sponsor_id!r}, "
            f"referred_id={self.referred_id!r})>"
        )
