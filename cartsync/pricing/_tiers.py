"""
Bulk pricing tiers — evaluated independently of sales.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from cartsync._types import Attribute
from cartsync.pricing._sale import active_attribute_for, calculate_best_sale
from cartsync.pricing._types import (
    NextTierSavings,
    PricingTier,
    PricingTierSnapshot,
    Sale,
    SaleCalculation,
    TierStrategy,
)

logger = logging.getLogger(__name__)

_KNOWN_STRATEGIES = frozenset(TierStrategy)

# ═══════════════════════════════════════════════════════════════════════════════
# Tier Selection
# ═══════════════════════════════════════════════════════════════════════════════


def best_tier(tiers: Sequence[PricingTier], qty: int) -> PricingTier | None:
    """
    Best-matching tier for a quantity.

    Among priceable tiers covering qty, the one with the highest min_qty
    wins; equal min_qty keeps list order.
    """
    best: PricingTier | None = None
    for tier in tiers:
        if not tier.covers(qty) or not _is_priceable(tier):
            continue
        if best is None or tier.min_qty > best.min_qty:
            best = tier
    return best


def _is_priceable(tier: PricingTier) -> bool:
    if tier.applied_price is not None or tier.strategy in _KNOWN_STRATEGIES:
        return True
    logger.warning("Skipping pricing tier with unknown strategy %r", tier.strategy)
    return False


def tier_unit_price(tier: PricingTier, base_price: float) -> float | None:
    """Unit price under a tier. Never negative. None when the strategy is unknown."""
    if tier.applied_price is not None:
        return tier.applied_price

    match tier.strategy:
        case TierStrategy.PERCENT_OFF:
            price = round(base_price * (1 - tier.value / 100), 2)
        case TierStrategy.AMOUNT_OFF:
            price = round(base_price - tier.value, 2)
        case TierStrategy.FIXED_PRICE:
            price = tier.value
        case _:
            logger.warning("Cannot price tier with unknown strategy %r", tier.strategy)
            return None

    return max(0.0, price)


def snapshot_tier(
    tiers: Sequence[PricingTier],
    qty: int,
    base_price: float,
) -> PricingTierSnapshot | None:
    """Freeze the tier applicable at qty for storage on a line item."""
    tier = best_tier(tiers, qty)
    if tier is None:
        return None
    applied = tier_unit_price(tier, base_price)
    if applied is None:
        return None
    return PricingTierSnapshot(
        min_qty=tier.min_qty,
        max_qty=tier.max_qty,
        strategy=tier.strategy,
        value=tier.value,
        applied_price=applied,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Upsell: "buy N more to save"
# ═══════════════════════════════════════════════════════════════════════════════


def calculate_next_tier_savings(
    qty: int,
    current_unit_price: float,
    base_price: float,
    tiers: Sequence[PricingTier],
) -> NextTierSavings | None:
    """
    Find the cheapest not-yet-reached tier to reach.

    "Cheapest" means fewest additional units: among tiers starting above
    qty that would lower the unit price, the lowest min_qty wins.
    Returns None when the shopper already has the best bulk price.

    Example:
        tiers = [PricingTier(5, "percentOff", 10), PricingTier(10, "percentOff", 20)]
        nxt = calculate_next_tier_savings(7, 90, 100, tiers)
        assert nxt.qty_needed == 3 and nxt.next_tier.value == 20
    """
    candidate: PricingTier | None = None
    candidate_price = current_unit_price

    for tier in tiers:
        if tier.min_qty <= qty:
            continue
        price = tier_unit_price(tier, base_price)
        if price is None or price >= current_unit_price:
            continue
        if candidate is None or tier.min_qty < candidate.min_qty:
            candidate = tier
            candidate_price = price

    if candidate is None:
        return None

    savings_per_unit = round(current_unit_price - candidate_price, 2)
    return NextTierSavings(
        next_tier=candidate,
        qty_needed=candidate.min_qty - qty,
        potential_unit_price=candidate_price,
        savings_per_unit=savings_per_unit,
        potential_savings=round(savings_per_unit * candidate.min_qty, 2),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Labels
# ═══════════════════════════════════════════════════════════════════════════════


def describe_tier(tier: PricingTier | PricingTierSnapshot) -> str:
    match tier.strategy:
        case TierStrategy.PERCENT_OFF:
            return f"{tier.value:g}% off"
        case TierStrategy.AMOUNT_OFF:
            return f"${tier.value:.2f} off"
        case TierStrategy.FIXED_PRICE:
            return f"${tier.value:.2f} each"
        case _:
            return "Bulk price"


def format_tier_range(tier: PricingTier | PricingTierSnapshot) -> str:
    if tier.max_qty is None:
        return f"{tier.min_qty}+ units"
    return f"{tier.min_qty}-{tier.max_qty} units"


# ═══════════════════════════════════════════════════════════════════════════════
# Quote: combined sale + tier price
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """
    Effective unit price for a quantity of a variant.

    Note: Sale and tier do not stack — the lower unit price wins,
    the sale on equality. tier is set only when the tier price won.
    """

    unit_price: float
    sale: SaleCalculation
    tier: PricingTierSnapshot | None

    @property
    def discount_amount(self) -> float:
        """Per-unit sale discount (0 when a tier or nothing applied)."""
        return self.sale.amount_off if self.tier is None else 0


def quote(
    base_price: float,
    qty: int,
    *,
    sale: Sale | None = None,
    tiers: Sequence[PricingTier] = (),
    attributes: Sequence[Attribute] = (),
    now: datetime | None = None,
) -> PriceQuote:
    calc = calculate_best_sale(
        sale,
        base_price,
        active_attribute_for(sale, attributes),
        now=now,
    )
    tier = snapshot_tier(tiers, qty, base_price)

    if tier is not None and tier.applied_price < calc.discounted_price:
        no_sale = SaleCalculation(
            has_active_sale=False,
            original_price=base_price,
            discounted_price=base_price,
            percent_off=0,
            amount_off=0,
        )
        return PriceQuote(unit_price=tier.applied_price, sale=no_sale, tier=tier)

    return PriceQuote(unit_price=calc.discounted_price, sale=calc, tier=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "best_tier",
    "tier_unit_price",
    "snapshot_tier",
    "calculate_next_tier_savings",
    "describe_tier",
    "format_tier_range",
    "PriceQuote",
    "quote",
)
