"""
Sale resolution — pick the best discount rule for a price.

Pure functions: identical inputs always produce identical output.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from cartsync._types import Attribute, round_half_up, utc_now
from cartsync.pricing._types import Sale, SaleCalculation, SaleVariant

# ═══════════════════════════════════════════════════════════════════════════════
# calculate_best_sale(): Primary Resolver
# ═══════════════════════════════════════════════════════════════════════════════


def calculate_best_sale(
    sale: Sale | None,
    original_price: float,
    active_attribute: Attribute | None = None,
    *,
    now: datetime | None = None,
) -> SaleCalculation:
    """
    Resolve the best applicable sale rule.

    Rules are compared by absolute discount amount, not percentage.
    Ties keep the earliest rule in list order.

    Example:
        sale = Sale(variants=(
            SaleVariant(discount=10),
            SaleVariant(amount_off=15, attribute_name="Size", attribute_value="XL"),
        ))
        calc = calculate_best_sale(sale, 100, Attribute("Size", "XL"))
        assert calc.amount_off == 15
    """
    no_sale = SaleCalculation(
        has_active_sale=False,
        original_price=original_price,
        discounted_price=original_price,
        percent_off=0,
        amount_off=0,
    )

    if sale is None or not sale.is_active or not sale.variants:
        return no_sale
    if not is_sale_window_open(sale, now=now):
        return no_sale

    best: SaleCalculation | None = None

    for index, variant in enumerate(sale.variants):
        if variant.is_exhausted:
            continue

        percent_off, amount_off, discounted = _apply_variant(variant, original_price)
        if amount_off == 0:
            continue

        if not is_variant_applicable(variant, active_attribute):
            continue

        # Strict comparison: the first rule wins a tie.
        if best is None or amount_off > best.amount_off:
            best = SaleCalculation(
                has_active_sale=True,
                original_price=original_price,
                discounted_price=discounted,
                percent_off=percent_off,
                amount_off=amount_off,
                best_variant=variant,
                best_variant_index=index,
            )

    return best if best is not None else no_sale


def _apply_variant(variant: SaleVariant, price: float) -> tuple[float, float, float]:
    """Returns (percent_off, amount_off, discounted_price)."""
    if variant.discount > 0:
        amount_off = round_half_up(price * variant.discount / 100)
        return variant.discount, amount_off, max(0, price - amount_off)

    if variant.amount_off > 0:
        percent_off = round_half_up(variant.amount_off / price * 100) if price > 0 else 0
        return percent_off, variant.amount_off, max(0, price - variant.amount_off)

    return 0, 0, price


# ═══════════════════════════════════════════════════════════════════════════════
# Applicability
# ═══════════════════════════════════════════════════════════════════════════════


def is_variant_applicable(
    variant: SaleVariant,
    active_attribute: Attribute | None,
) -> bool:
    """
    Check whether a rule applies to the current attribute selection.

    Without a selection, attribute-scoped rules count as applicable
    pending variant selection.
    """
    name, value = variant.attribute_name, variant.attribute_value

    if name is None and value is None:
        return True
    if name is None:
        # Value without a dimension never matches anything.
        return False
    if active_attribute is None:
        return True
    if value is None:
        return active_attribute.name == name
    return active_attribute.name == name and active_attribute.value == value


def is_sale_window_open(sale: Sale, *, now: datetime | None = None) -> bool:
    moment = now if now is not None else utc_now()
    if sale.start_date is not None and sale.start_date > moment:
        return False
    if sale.end_date is not None and sale.end_date < moment:
        return False
    return True


def active_attribute_for(
    sale: Sale | None,
    attributes: Iterable[Attribute],
) -> Attribute | None:
    """
    Pick the selected attribute a sale's scoped rules care about.

    Follows rule order: the first rule whose dimension is among the
    selected attributes decides. None when no rule is attribute-scoped.
    """
    if sale is None:
        return None
    by_name = {a.name: a for a in attributes}
    for variant in sale.variants:
        if variant.attribute_name is not None and variant.attribute_name in by_name:
            return by_name[variant.attribute_name]
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# Sale Statistics
# ═══════════════════════════════════════════════════════════════════════════════


def sold_from_sale(sale: Sale | None) -> int:
    """Total units sold through the sale's rules."""
    if sale is None:
        return 0
    return sum(v.bought_count for v in sale.variants)


def total_capacity(sale: Sale | None) -> int:
    """Sum of max_buys across rules (0 means uncapped)."""
    if sale is None:
        return 0
    return sum(v.max_buys for v in sale.variants)


def available_from_sale(sale: Sale | None) -> int:
    if sale is None:
        return 0
    return sum(max(0, v.max_buys - v.bought_count) for v in sale.variants)


def sale_progress(sale: Sale | None) -> int:
    """Sold percentage of capacity, floored to an integer in 0..100."""
    capacity = total_capacity(sale)
    if capacity == 0:
        return 0
    return min(100, sold_from_sale(sale) * 100 // capacity)


def is_sale_sold_out(sale: Sale | None) -> bool:
    capacity = total_capacity(sale)
    if capacity == 0:
        return False
    return sold_from_sale(sale) >= capacity


def should_show_marquee(sale: Sale | None, *, now: datetime | None = None) -> bool:
    """Hot sales that are running and not sold out get the banner."""
    if sale is None or not sale.is_active or not sale.is_hot:
        return False
    moment = now if now is not None else utc_now()
    if sale.end_date is not None and sale.end_date < moment:
        return False
    return not is_sale_sold_out(sale)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
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
)
