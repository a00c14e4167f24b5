"""
Transaction model.

Ledger entry for deposits, withdrawals, refunds and commission credits.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    DECIMAL,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_app.models.base import Base
from mlm_app.models.enums import TransactionStatus


class Transaction(Base):
    """Transaction model - append-only ledger entries."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint('amount > 0', name='check_transaction_amount_positive'),
        Index('idx_transaction_user_created', 'user_id', 'created_at'),
        Index('idx_transaction_type_status', 'type', 'status'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(18, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=TransactionStatus.PENDING.value, nullable=False
    )
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Commission provenance
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source_user_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    source_transaction_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )

    # Withdrawal link
    withdrawal_request_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )

    # Payment gateway references
    gateway_order_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, unique=True
    )
    gateway_payment_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_final(self) -> bool:
        return self.status in (
            TransactionStatus.COMPLETED.value,
            TransactionStatus.FAILED.value,
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Transaction(id={self.id}, user_id={self.user_id!r}, "
            f"type={self.type}, amount={self.amount}, status={self.status})>"
        )
