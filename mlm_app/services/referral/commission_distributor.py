"""
Commission distributor.

Pays level income up the sponsor chain plus the flat sponsor commission and
profit share for one completed deposit. Runs inside the caller's
transaction: any store failure propagates and nothing is half-credited.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.models.enums import TransactionStatus, TransactionType
from mlm_app.models.system_settings import SystemSettings
from mlm_app.models.user import User
from mlm_app.repositories.system_settings_repository import SystemSettingsRepository
from mlm_app.repositories.transaction_repository import TransactionRepository
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.repositories.wallet_repository import WalletRepository
from mlm_app.services.referral.chain_manager import ReferralChainManager
from mlm_app.utils.exceptions import NotFoundError, ValidationError
from mlm_app.utils.money import percentage_of, to_decimal


@dataclass
class CommissionCredit:
    """One credit paid to one recipient."""

    user_id: str
    type: TransactionType
    amount: Decimal
    level: int | None = None
    transaction_id: int | None = None


@dataclass
class CommissionResult:
    """Result of commission distribution."""

    depositor_id: str
    deposit_amount: Decimal
    credits: list[CommissionCredit] = field(default_factory=list)
    forfeited_user_ids: list[str] = field(default_factory=list)

    def total_for(self, credit_type: TransactionType) -> Decimal:
        return sum(
            (c.amount for c in self.credits if c.type == credit_type),
            Decimal("0"),
        )

    @property
    def level_income_total(self) -> Decimal:
        return self.total_for(TransactionType.LEVEL_INCOME)

    @property
    def sponsor_income_total(self) -> Decimal:
        return self.total_for(TransactionType.SPONSOR_INCOME)

    @property
    def profit_share_total(self) -> Decimal:
        return self.total_for(TransactionType.PROFIT_SHARE)

    @property
    def total(self) -> Decimal:
        return sum((c.amount for c in self.credits), Decimal("0"))

    @property
    def credited_user_ids(self) -> list[str]:
        return list(dict.fromkeys(c.user_id for c in self.credits))


class CommissionDistributor:
    """Distributes deposit commissions."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize commission distributor.

        Args:
            session: Async database session
        """
        self.session = session
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.transaction_repo = TransactionRepository(session)
        self.settings_repo = SystemSettingsRepository(session)
        self.chain_manager = ReferralChainManager(session)

    async def distribute_commissions(
        self,
        depositor_id: str,
        deposit_amount: Decimal | int | str,
        source_transaction_id: int | None = None,
    ) -> CommissionResult:
        """
        Credit commissions for a deposit.

        Level i of the sponsor chain (1 = direct sponsor) receives
        amount * tier(i) / 100 for every configured tier. A sponsor id that
        does not resolve to a user ends the walk; a banned ancestor forfeits
        its credit while the walk continues above it.

        Args:
            depositor_id: User who deposited
            deposit_amount: Deposit amount (> 0)
            source_transaction_id: Deposit transaction that triggered this

        Returns:
            CommissionResult with every credit made

        Raises:
            ValidationError: Amount not positive
            NotFoundError: Depositor does not exist
        """
        amount = to_decimal(deposit_amount)
        if amount <= 0:
            raise ValidationError(
                "Deposit amount must be positive", amount=str(amount)
            )

        depositor = await self.user_repo.get_by_id(depositor_id)
        if depositor is None:
            raise NotFoundError("Depositor not found", user_id=depositor_id)

        system_settings = await self.settings_repo.get_or_create()
        tiers = system_settings.get_level_tiers()
        result = CommissionResult(depositor_id=depositor_id, deposit_amount=amount)

        chain = await self.chain_manager.get_sponsor_chain(
            depositor_id, max_depth=max(system_settings.deepest_level, 1)
        )

        # Level income
        for level, ancestor in enumerate(chain, start=1):
            percentage = tiers.get(level, Decimal("0"))
            share = percentage_of(amount, percentage)
            if share <= 0:
                continue
            if ancestor.is_banned:
                self._forfeit(result, ancestor, TransactionType.LEVEL_INCOME, level)
                continue
            await self._credit(
                result,
                ancestor,
                TransactionType.LEVEL_INCOME,
                share,
                f"Level {level} income from {depositor.name}'s deposit",
                source_transaction_id,
                level=level,
            )

        # Flat sponsor commission to the direct sponsor
        sponsor_share = percentage_of(
            amount, system_settings.sponsor_commission_percentage
        )
        if sponsor_share > 0 and depositor.sponsor_id is not None:
            sponsor = chain[0] if chain else None
            if sponsor is None:
                logger.warning(
                    "Sponsor commission skipped: sponsor does not exist",
                    extra={
                        "depositor_id": depositor_id,
                        "sponsor_id": depositor.sponsor_id,
                    },
                )
            elif sponsor.is_banned:
                self._forfeit(result, sponsor, TransactionType.SPONSOR_INCOME)
            else:
                await self._credit(
                    result,
                    sponsor,
                    TransactionType.SPONSOR_INCOME,
                    sponsor_share,
                    f"Sponsor commission from {depositor.name}'s deposit",
                    source_transaction_id,
                )

        # Flat profit share to the pool recipient
        profit_share = percentage_of(amount, system_settings.profit_share_percentage)
        if profit_share > 0:
            recipient = await self._profit_pool_recipient(system_settings)
            if recipient is None:
                logger.warning(
                    "Profit share skipped: no profit pool recipient",
                    extra={
                        "depositor_id": depositor_id,
                        "profit_pool_user_id": system_settings.profit_pool_user_id,
                    },
                )
            elif recipient.is_banned:
                self._forfeit(result, recipient, TransactionType.PROFIT_SHARE)
            else:
                await self._credit(
                    result,
                    recipient,
                    TransactionType.PROFIT_SHARE,
                    profit_share,
                    f"Profit share from {depositor.name}'s deposit",
                    source_transaction_id,
                )

        logger.info(
            "Commissions distributed",
            extra={
                "depositor_id": depositor_id,
                "deposit_amount": str(amount),
                "source_transaction_id": source_transaction_id,
                "credits": len(result.credits),
                "level_income": str(result.level_income_total),
                "sponsor_income": str(result.sponsor_income_total),
                "profit_share": str(result.profit_share_total),
                "forfeited": result.forfeited_user_ids,
            },
        )
        return result

    async def _profit_pool_recipient(
        self, system_settings: SystemSettings
    ) -> User | None:
        if system_settings.profit_pool_user_id:
            return await self.user_repo.get_by_id(system_settings.profit_pool_user_id)
        return await self.user_repo.get_root_admin()

    def _forfeit(
        self,
        result: CommissionResult,
        user: User,
        credit_type: TransactionType,
        level: int | None = None,
    ) -> None:
        result.forfeited_user_ids.append(user.id)
        logger.warning(
            "Commission forfeited: recipient is banned",
            extra={
                "user_id": user.id,
                "type": credit_type.value,
                "level": level,
                "depositor_id": result.depositor_id,
            },
        )

    async def _credit(
        self,
        result: CommissionResult,
        user: User,
        credit_type: TransactionType,
        amount: Decimal,
        description: str,
        source_transaction_id: int | None,
        level: int | None = None,
    ) -> None:
        """Increment accumulators and wallet, then append the ledger entry."""
        # Accumulator columns share the transaction type's name
        column = credit_type.value

        await self.user_repo.increment(user.id, **{column: amount})

        credited = await self.wallet_repo.credit(
            user.id, balance=amount, total_income=amount, **{column: amount}
        )
        if not credited:
            logger.warning(
                "Wallet missing for commission recipient, creating it",
                extra={"user_id": user.id},
            )
            await self.wallet_repo.create(
                user_id=user.id,
                balance=amount,
                total_income=amount,
                **{column: amount},
            )

        transaction = await self.transaction_repo.create(
            user_id=user.id,
            type=credit_type.value,
            amount=amount,
            status=TransactionStatus.COMPLETED.value,
            description=description,
            level=level,
            source_user_id=result.depositor_id,
            source_transaction_id=source_transaction_id,
            processed_at=datetime.now(UTC),
        )

        result.credits.append(
            CommissionCredit(
                user_id=user.id,
                type=credit_type,
                amount=amount,
                level=level,
                transaction_id=transaction.id,
            )
        )

        logger.debug(
            "Commission credited",
            extra={
                "user_id": user.id,
                "type": column,
                "level": level,
                "amount": str(amount),
            },
        )
