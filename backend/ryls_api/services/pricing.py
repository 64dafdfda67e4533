"""
Pricing Service — Scholarship fee resolution in the gateway's settlement currency.

USD list prices are converted to whole IDR with a single configured fixed
rate, rounded half-up to the nearest rupiah.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from ryls_api.config import Settings
from ryls_api.constants import ScholarshipType, ITEM_TEMPLATES
from ryls_api.errors import ValidationError, ConfigurationError

logger = logging.getLogger(__name__)


class PricingService:
    """Maps a scholarship type to an IDR amount and a gateway line item."""

    def __init__(self, settings: Settings):
        self.rate = Decimal(settings.USD_TO_IDR_RATE)
        self.min_amount = settings.MIN_AMOUNT_IDR
        self.max_amount = settings.MAX_AMOUNT_IDR
        self.prices_usd = {
            ScholarshipType.FULLY_FUNDED: Decimal(settings.FULLY_FUNDED_PRICE_USD),
            ScholarshipType.SELF_FUNDED: Decimal(settings.SELF_FUNDED_PRICE_USD),
        }

    @staticmethod
    def _coerce(scholarship_type) -> ScholarshipType:
        try:
            return ScholarshipType(scholarship_type)
        except ValueError:
            raise ValidationError(f"Invalid scholarship type: {scholarship_type}")

    def price_usd(self, scholarship_type) -> Decimal:
        return self.prices_usd[self._coerce(scholarship_type)]

    def amount_for(self, scholarship_type) -> int:
        """Whole-IDR amount for a scholarship type.

        Raises:
            ValidationError: unknown type, or the amount falls outside the
                gateway's accepted range.
        """
        usd = self.price_usd(scholarship_type)
        amount = int((usd * self.rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if amount < self.min_amount or amount > self.max_amount:
            raise ValidationError(
                f"Amount {amount} IDR is outside the gateway range "
                f"[{self.min_amount}, {self.max_amount}]"
            )
        return amount

    def item_template_for(self, scholarship_type) -> dict:
        return dict(ITEM_TEMPLATES[self._coerce(scholarship_type)])

    def validate_configuration(self) -> dict:
        """Resolve every scholarship type once; fatal if any is out of range."""
        resolved = {}
        for scholarship_type in ScholarshipType:
            try:
                resolved[scholarship_type.value] = self.amount_for(scholarship_type)
            except ValidationError as e:
                raise ConfigurationError(f"Pricing for {scholarship_type.value} is invalid: {e.message}")
        logger.info("Resolved scholarship fees (IDR): %s", resolved)
        return resolved
