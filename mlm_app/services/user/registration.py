"""
User registration functionality.

Creates users under a sponsor resolved from a referral code, with wallet,
referral edge and team sizes written in one transaction.
"""

import secrets
from urllib.parse import parse_qs, urlparse

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_app.config.constants import (
    REFERRAL_CODE_ALPHABET,
    REFERRAL_CODE_LENGTH,
    REFERRAL_CODE_MAX_ATTEMPTS,
    REFERRAL_LINK_PARAM,
)
from mlm_app.config.settings import settings
from mlm_app.models.user import User
from mlm_app.repositories.user_repository import UserRepository
from mlm_app.repositories.wallet_repository import WalletRepository
from mlm_app.services.referral_service import ReferralService
from mlm_app.utils.cache import CacheService
from mlm_app.utils.db_decorators import with_rollback_on_error
from mlm_app.utils.exceptions import (
    InvalidSponsorError,
    MLMError,
    ValidationError,
)


def generate_referral_code() -> str:
    """Random 16-character code from A-Z and 0-9."""
    return "".join(
        secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH)
    )


def normalize_referral_code(code: str | None) -> str:
    return (code or "").strip().upper()


def parse_referral_link(url: str) -> str | None:
    """
    Extract the sponsor code from a registration link (?ref=<code>).

    Returns:
        Normalized code, or None when the link carries none
    """
    values = parse_qs(urlparse(url).query).get(REFERRAL_LINK_PARAM)
    if not values:
        return None
    code = normalize_referral_code(values[0])
    return code or None


def build_referral_link(referral_code: str) -> str:
    """Registration link sharing a user's referral code."""
    return f"{settings.public_base_url}/register?{REFERRAL_LINK_PARAM}={referral_code}"


class UserRegistrationMixin:
    """
    Mixin for user registration functionality.

    Handles new user registration with referral support.
    """

    def __init__(
        self, session: AsyncSession, cache: CacheService | None = None
    ) -> None:
        """Initialize user registration mixin."""
        self.session = session
        self.cache = cache
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.referral_service = ReferralService(session, cache)

    @with_rollback_on_error
    async def register_user(
        self,
        user_id: str,
        name: str,
        email: str,
        sponsor_referral_code: str,
        phone: str | None = None,
    ) -> User:
        """
        Register a user under the sponsor owning sponsor_referral_code.

        The identity provider has already issued user_id. The sponsor is
        resolved before anything is written; user, wallet, referral edge
        and team sizes are committed together or not at all.

        Args:
            user_id: Id issued by the identity provider
            name: Display name
            email: Email address
            sponsor_referral_code: Sponsor's referral code
            phone: Optional phone number

        Returns:
            Created user

        Raises:
            InvalidSponsorError: Unknown or banned sponsor code
            ValidationError: Bad input, or id/email already registered
        """
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not user_id or not name:
            raise ValidationError("User id and name are required")
        if "@" not in email:
            raise ValidationError("Invalid email address", email=email)

        code = normalize_referral_code(sponsor_referral_code)
        sponsor = await self.user_repo.get_by_referral_code(code) if code else None
        if sponsor is None or sponsor.is_banned:
            logger.warning(
                "Registration rejected: invalid sponsor code",
                extra={"user_id": user_id, "sponsor_referral_code": code},
            )
            raise InvalidSponsorError(
                "Invalid sponsor referral code", referral_code=code
            )

        if await self.user_repo.exists(id=user_id):
            raise ValidationError("User already registered", user_id=user_id)
        if await self.user_repo.get_by_email(email):
            raise ValidationError("Email already registered", email=email)

        user = await self.user_repo.create(
            id=user_id,
            name=name,
            email=email,
            phone=phone,
            referral_code=await self._generate_unique_code(),
            sponsor_id=sponsor.id,
            sponsor_referral_code=sponsor.referral_code,
        )
        await self.wallet_repo.create(user_id=user.id)

        result = await self.referral_service.create_referral(user.id, sponsor.id)

        await self.session.commit()

        # Readers may have re-cached the pre-commit downline
        if self.cache is not None:
            await self.cache.invalidate_downline(u.id for u in result.sponsor_chain)

        logger.info(
            "User registered",
            extra={
                "user_id": user.id,
                "sponsor_id": sponsor.id,
                "sponsor_total_team_size": result.sponsor_team.total,
            },
        )
        return user

    @with_rollback_on_error
    async def create_root_admin(
        self,
        user_id: str,
        name: str,
        email: str,
        phone: str | None = None,
    ) -> User:
        """
        Seed the sponsor-less administrator at the top of the network.

        Raises:
            ValidationError: A root admin or this user already exists
        """
        existing = await self.user_repo.get_root_admin()
        if existing is not None:
            raise ValidationError(
                "Root admin already exists", user_id=existing.id
            )
        if await self.user_repo.exists(id=user_id):
            raise ValidationError("User already registered", user_id=user_id)

        user = await self.user_repo.create(
            id=user_id,
            name=name.strip(),
            email=email.strip().lower(),
            phone=phone,
            referral_code=await self._generate_unique_code(),
            is_admin=True,
        )
        await self.wallet_repo.create(user_id=user.id)
        await self.session.commit()

        logger.info(
            "Root admin created",
            extra={"user_id": user.id, "referral_code": user.referral_code},
        )
        return user

    def get_referral_link(self, user: User) -> str:
        return build_referral_link(user.referral_code)

    async def _generate_unique_code(self) -> str:
        for _ in range(REFERRAL_CODE_MAX_ATTEMPTS):
            code = generate_referral_code()
            if not await self.user_repo.get_by_referral_code(code):
                return code
        raise MLMError("Could not generate a unique referral code")
