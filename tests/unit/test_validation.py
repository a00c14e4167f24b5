"""
Tests for input validation models and helpers.

Covers:
- Referral codes and ?ref= links
- System settings update model
- Bank details of a withdrawal
- Application settings
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from mlm_app.config.constants import REFERRAL_CODE_ALPHABET, REFERRAL_CODE_LENGTH
from mlm_app.config.settings import Settings
from mlm_app.services.settings_service import SystemSettingsUpdate
from mlm_app.services.user import (
    build_referral_link,
    generate_referral_code,
    normalize_referral_code,
    parse_referral_link,
)
from mlm_app.services.withdrawal import BankDetails


class TestReferralCodes:
    """Test referral code generation and links."""

    def test_generated_code_shape(self):
        """16 characters from A-Z0-9."""
        code = generate_referral_code()

        assert len(code) == REFERRAL_CODE_LENGTH
        assert set(code) <= set(REFERRAL_CODE_ALPHABET)

    def test_generated_codes_differ(self):
        """Codes are random."""
        assert len({generate_referral_code() for _ in range(50)}) == 50

    def test_normalize(self):
        """Codes are trimmed and upper-cased."""
        assert normalize_referral_code("  abc123 ") == "ABC123"
        assert normalize_referral_code(None) == ""

    def test_parse_link(self):
        """The ref parameter is extracted from a registration link."""
        link = "https://mlm.example.com/register?ref=abcd1234&utm=x"

        assert parse_referral_link(link) == "ABCD1234"

    def test_parse_link_without_ref(self):
        """Links without a code yield None."""
        assert parse_referral_link("https://mlm.example.com/register") is None
        assert parse_referral_link("https://mlm.example.com/register?ref=") is None

    def test_build_link_round_trip(self):
        """A built link parses back to the same code."""
        link = build_referral_link("ABCD1234EFGH5678")

        assert link.endswith("/register?ref=ABCD1234EFGH5678")
        assert parse_referral_link(link) == "ABCD1234EFGH5678"


class TestSystemSettingsUpdate:
    """Test the settings update model."""

    def test_tiers_sorted(self):
        """Tiers are accepted in any order and stored sorted."""
        update = SystemSettingsUpdate(
            level_commissions=[
                {"level": 2, "percentage": "3"},
                {"level": 1, "percentage": "5"},
            ]
        )

        assert [t.level for t in update.level_commissions] == [1, 2]
        assert update.level_commissions[0].percentage == Decimal("5")

    @pytest.mark.parametrize(
        "levels",
        [[1, 1], [2, 3], [1, 3]],
    )
    def test_tiers_must_be_contiguous(self, levels):
        """Duplicate levels and gaps are rejected."""
        with pytest.raises(PydanticValidationError):
            SystemSettingsUpdate(
                level_commissions=[
                    {"level": level, "percentage": "1"} for level in levels
                ]
            )

    @pytest.mark.parametrize("value", ["-1", "100.5"])
    def test_percentage_bounds(self, value):
        """Percentages stay within [0, 100]."""
        with pytest.raises(PydanticValidationError):
            SystemSettingsUpdate(sponsor_commission_percentage=value)

    def test_tier_percentage_bounds(self):
        """Tier percentages stay within [0, 100]."""
        with pytest.raises(PydanticValidationError):
            SystemSettingsUpdate(
                level_commissions=[{"level": 1, "percentage": "101"}]
            )

    def test_max_withdrawal_below_min(self):
        """max below min in the same update is rejected."""
        with pytest.raises(PydanticValidationError):
            SystemSettingsUpdate(
                min_withdrawal_amount="500", max_withdrawal_amount="100"
            )

    def test_unknown_field_rejected(self):
        """Typos do not pass silently."""
        with pytest.raises(PydanticValidationError):
            SystemSettingsUpdate(sponsor_percentage="5")

    def test_only_set_fields_dumped(self):
        """Partial updates leave other fields out."""
        update = SystemSettingsUpdate(profit_share_percentage="2")

        assert update.model_dump(exclude_unset=True) == {
            "profit_share_percentage": Decimal("2")
        }


class TestBankDetails:
    """Test withdrawal destination validation."""

    def test_valid_details_normalized(self):
        """IFSC is upper-cased and spaces removed from the account number."""
        details = BankDetails(
            account_name=" Ravi Kumar ",
            account_number="1234 5678 9012",
            ifsc_code="sbin0001234",
            bank_name="State Bank",
        )

        assert details.account_name == "Ravi Kumar"
        assert details.account_number == "123456789012"
        assert details.ifsc_code == "SBIN0001234"

    @pytest.mark.parametrize("ifsc", ["SBIN1001234", "SBI00001234", "SBIN000123"])
    def test_invalid_ifsc(self, ifsc):
        """IFSC must be 4 letters, 0, then 6 alphanumerics."""
        with pytest.raises(PydanticValidationError):
            BankDetails(
                account_name="Ravi",
                account_number="123456789",
                ifsc_code=ifsc,
                bank_name="State Bank",
            )

    def test_account_number_digits_only(self):
        """Letters in the account number are rejected."""
        with pytest.raises(PydanticValidationError):
            BankDetails(
                account_name="Ravi",
                account_number="12AB5678",
                ifsc_code="SBIN0001234",
                bank_name="State Bank",
            )


class TestSettings:
    """Test application settings."""

    def test_postgres_url_gets_async_driver(self):
        """postgresql:// is rewritten to asyncpg."""
        config = Settings(database_url="postgresql://u:p@localhost/db")

        assert config.database_url == "postgresql+asyncpg://u:p@localhost/db"

    def test_sync_driver_rejected(self):
        """Only async drivers are accepted."""
        with pytest.raises(PydanticValidationError):
            Settings(database_url="mysql://u:p@localhost/db")

    def test_log_level_normalized(self):
        """Log level names are upper-cased."""
        config = Settings(database_url="sqlite+aiosqlite://", log_level="debug")

        assert config.log_level == "DEBUG"

    def test_integrations_disabled_by_default(self):
        """Payment, email and SMS need explicit credentials."""
        config = Settings(
            database_url="sqlite+aiosqlite://",
            payment_key_id=None,
            payment_key_secret=None,
            smtp_host=None,
            sms_account_sid=None,
        )

        assert not config.payment_enabled
        assert not config.email_enabled
        assert not config.sms_enabled

    def test_payment_enabled_with_both_keys(self):
        """Gateway is enabled once both keys are set."""
        config = Settings(
            database_url="sqlite+aiosqlite://",
            payment_key_id="key",
            payment_key_secret="secret",
        )

        assert config.payment_enabled

    def test_public_base_url_trailing_slash(self):
        """Trailing slash is dropped so links stay clean."""
        config = Settings(
            database_url="sqlite+aiosqlite://",
            public_base_url="https://mlm.example.com/",
        )

        assert config.public_base_url == "https://mlm.example.com"
