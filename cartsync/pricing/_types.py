"""
Pricing types — sales, sale variants and bulk pricing tiers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

# ═══════════════════════════════════════════════════════════════════════════════
# Sale: promotional discount rules
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SaleVariant:
    """
    One scoped discount rule of a sale.

    Scope:
        attribute_name=None, attribute_value=None → whole product
        attribute_name set,  attribute_value=None → every value of that attribute
        attribute_name set,  attribute_value set  → one specific variant

    Note: discount is a percentage; amount_off is a fixed amount.
    A percentage rule wins over a fixed amount on the same variant.
    max_buys=0 means uncapped.
    """

    discount: float = 0
    amount_off: float = 0
    attribute_name: str | None = None
    attribute_value: str | None = None
    max_buys: int = 0
    bought_count: int = 0

    @property
    def is_exhausted(self) -> bool:
        return self.max_buys > 0 and self.bought_count >= self.max_buys


@dataclass(frozen=True, slots=True)
class Sale:
    """A product sale with its variant rules and optional validity window."""

    id: str | None = None
    is_active: bool = True
    variants: tuple[SaleVariant, ...] = ()
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_hot: bool = False


@dataclass(frozen=True, slots=True)
class SaleCalculation:
    """
    Result of resolving the best sale rule for a price.

    best_variant_index is the position of the winning rule in Sale.variants.
    """

    has_active_sale: bool
    original_price: float
    discounted_price: float
    percent_off: float
    amount_off: float
    best_variant: SaleVariant | None = None
    best_variant_index: int | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing Tiers: bulk purchase discounts
# ═══════════════════════════════════════════════════════════════════════════════


class TierStrategy(StrEnum):
    PERCENT_OFF = "percentOff"
    AMOUNT_OFF = "amountOff"
    FIXED_PRICE = "fixedPrice"


@dataclass(frozen=True, slots=True)
class PricingTier:
    """
    Bulk pricing rule: applies while min_qty <= qty <= max_qty.

    max_qty=None means open-ended. applied_price, when the server provides
    it, overrides the price derived from strategy/value.
    """

    min_qty: int
    strategy: str
    value: float
    max_qty: int | None = None
    applied_price: float | None = None

    def covers(self, qty: int) -> bool:
        return qty >= self.min_qty and (self.max_qty is None or qty <= self.max_qty)


@dataclass(frozen=True, slots=True)
class PricingTierSnapshot:
    """The tier a line item was priced with at its last known quantity."""

    min_qty: int
    strategy: str
    value: float
    applied_price: float
    max_qty: int | None = None


@dataclass(frozen=True, slots=True)
class NextTierSavings:
    """What the shopper gains by reaching the next tier ("buy N more")."""

    next_tier: PricingTier
    qty_needed: int
    potential_unit_price: float
    savings_per_unit: float
    potential_savings: float


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "SaleVariant",
    "Sale",
    "SaleCalculation",
    "TierStrategy",
    "PricingTier",
    "PricingTierSnapshot",
    "NextTierSavings",
)
