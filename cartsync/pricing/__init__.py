"""
Pricing — sale rules and bulk tiers, as pure functions.

    from cartsync import pricing as P

    calc = P.calculate_best_sale(sale, 100, P.Attribute("Size", "XL"))
    calc.discounted_price, calc.amount_off, calc.best_variant

    tier = P.best_tier(tiers, qty=7)
    upsell = P.calculate_next_tier_savings(7, 90, 100, tiers)
    # → "buy 3 more to save"

Resolution rules:

    Sale rule skipped   → max_buys > 0 and bought_count >= max_buys
    Best sale rule      → largest absolute amount_off, first wins a tie
    Best tier           → highest min_qty covering the quantity
"""

from cartsync._types import Attribute
from cartsync.pricing._types import (
    SaleVariant,
    Sale,
    SaleCalculation,
    TierStrategy,
    PricingTier,
    PricingTierSnapshot,
    NextTierSavings,
)
from cartsync.pricing._sale import (
    calculate_best_sale,
    is_variant_applicable,
    is_sale_window_open,
    active_attribute_for,
    sold_from_sale,
    total_capacity,
    available_from_sale,
    sale_progress,
    is_sale_sold_out,
    should_show_marquee,
)
from cartsync.pricing._tiers import (
    best_tier,
    tier_unit_price,
    snapshot_tier,
    calculate_next_tier_savings,
    describe_tier,
    format_tier_range,
    PriceQuote,
    quote,
)
from cartsync.pricing._resolve import (
    PRICE_EPSILON,
    base_price_of,
    resolve,
    expected_unit_price,
    needs_refresh,
)

__all__ = (
    "Attribute",
    # Types
    "SaleVariant",
    "Sale",
    "SaleCalculation",
    "TierStrategy",
    "PricingTier",
    "PricingTierSnapshot",
    "NextTierSavings",
    # Sales
    "calculate_best_sale",
    "is_variant_applicable",
    "is_sale_window_open",
    "active_attribute_for",
    "sold_from_sale",
    "total_capacity",
    "available_from_sale",
    "sale_progress",
    "is_sale_sold_out",
    "should_show_marquee",
    # Tiers
    "best_tier",
    "tier_unit_price",
    "snapshot_tier",
    "calculate_next_tier_savings",
    "describe_tier",
    "format_tier_range",
    "PriceQuote",
    "quote",
    # Line items
    "PRICE_EPSILON",
    "base_price_of",
    "resolve",
    "expected_unit_price",
    "needs_refresh",
)
