from __future__ import annotations

from datetime import timedelta

import pytest

from cartsync import Attribute
from cartsync.pricing import (
    PricingTier,
    Sale,
    SaleVariant,
    available_from_sale,
    best_tier,
    calculate_best_sale,
    calculate_next_tier_savings,
    describe_tier,
    expected_unit_price,
    format_tier_range,
    is_sale_sold_out,
    needs_refresh,
    quote,
    resolve,
    sale_progress,
    should_show_marquee,
    snapshot_tier,
    sold_from_sale,
    tier_unit_price,
    total_capacity,
)
from cartsync.store import LineItem, ProductDetails

from helpers import T0

XL = Attribute("Size", "XL")
TIERS = (
    PricingTier(min_qty=5, strategy="percentOff", value=10),
    PricingTier(min_qty=10, strategy="percentOff", value=20),
)


class TestSaleResolution:
    def test_largest_absolute_amount_wins(self):
        sale = Sale(
            variants=(
                SaleVariant(discount=10),
                SaleVariant(amount_off=15, attribute_name="Size", attribute_value="XL"),
            )
        )
        calc = calculate_best_sale(sale, 100, XL, now=T0)
        assert calc.amount_off == 15
        assert calc.discounted_price == 85
        assert calc.best_variant_index == 1
        assert calc.percent_off == 15

    def test_tie_goes_to_first_rule(self):
        sale = Sale(variants=(SaleVariant(discount=20), SaleVariant(amount_off=20)))
        calc = calculate_best_sale(sale, 100, now=T0)
        assert calc.best_variant_index == 0

    def test_repeated_calls_are_identical(self):
        sale = Sale(variants=(SaleVariant(discount=12.5), SaleVariant(amount_off=7, attribute_name="Size")))
        results = {calculate_best_sale(sale, 59.99, XL, now=T0) for _ in range(5)}
        assert len(results) == 1

    def test_exhausted_rule_skipped(self):
        sale = Sale(
            variants=(
                SaleVariant(discount=50, max_buys=3, bought_count=3),
                SaleVariant(discount=10),
            )
        )
        calc = calculate_best_sale(sale, 100, now=T0)
        assert calc.amount_off == 10

    def test_uncapped_rule_never_exhausted(self):
        assert not SaleVariant(discount=5, max_buys=0, bought_count=100).is_exhausted

    def test_percentage_rounds_half_up(self):
        calc = calculate_best_sale(Sale(variants=(SaleVariant(discount=5),)), 50, now=T0)
        assert calc.amount_off == 3

    def test_fixed_amount_floors_price_at_zero(self):
        calc = calculate_best_sale(Sale(variants=(SaleVariant(amount_off=30),)), 20, now=T0)
        assert calc.discounted_price == 0

    def test_scoped_rules(self):
        by_value = SaleVariant(discount=10, attribute_name="Size", attribute_value="XL")
        calc = calculate_best_sale(Sale(variants=(by_value,)), 100, Attribute("Size", "M"), now=T0)
        assert not calc.has_active_sale

        by_name = SaleVariant(discount=10, attribute_name="Size")
        assert calculate_best_sale(Sale(variants=(by_name,)), 100, Attribute("Size", "M"), now=T0).has_active_sale
        assert not calculate_best_sale(Sale(variants=(by_name,)), 100, Attribute("Color", "Red"), now=T0).has_active_sale

    def test_no_selection_keeps_scoped_rules_provisional(self):
        sale = Sale(variants=(SaleVariant(discount=30, attribute_name="Size", attribute_value="XL"),))
        assert calculate_best_sale(sale, 100, None, now=T0).amount_off == 30

    def test_inactive_and_out_of_window_sales(self):
        variants = (SaleVariant(discount=10),)
        assert not calculate_best_sale(Sale(is_active=False, variants=variants), 100, now=T0).has_active_sale
        future = Sale(variants=variants, start_date=T0 + timedelta(days=1))
        assert not calculate_best_sale(future, 100, now=T0).has_active_sale
        ended = Sale(variants=variants, end_date=T0 - timedelta(seconds=1))
        assert not calculate_best_sale(ended, 100, now=T0).has_active_sale

    def test_resolve_line_item_uses_its_attributes(self):
        sale = Sale(variants=(SaleVariant(amount_off=5, attribute_name="Size", attribute_value="XL"),))
        item = LineItem(
            id="a",
            product_id="P1",
            quantity=1,
            attributes=(XL,),
            unit_price=100,
            total_price=100,
            added_at=T0,
            product_details=ProductDetails(id="P1", price=100, sale=sale),
        )
        assert resolve(item, now=T0).discounted_price == 95


class TestLineItemPricing:
    def _item(self, unit_price: float, details: ProductDetails | None) -> LineItem:
        return LineItem(
            id="a",
            product_id="P1",
            quantity=2,
            attributes=(),
            unit_price=unit_price,
            total_price=unit_price * 2,
            added_at=T0,
            product_details=details,
        )

    def test_stale_price_needs_refresh(self):
        details = ProductDetails(id="P1", price=100, sale=Sale(variants=(SaleVariant(discount=10),)))
        assert expected_unit_price(self._item(100, details), now=T0) == 90
        assert needs_refresh(self._item(100, details), now=T0)
        assert not needs_refresh(self._item(90, details), now=T0)

    def test_without_details_nothing_to_compare(self):
        assert expected_unit_price(self._item(100, None), now=T0) is None
        assert not needs_refresh(self._item(100, None), now=T0)


class TestSaleStats:
    def test_progress_and_sold_out(self):
        sale = Sale(
            is_hot=True,
            variants=(
                SaleVariant(discount=10, max_buys=10, bought_count=3),
                SaleVariant(discount=5, max_buys=10, bought_count=4),
            ),
        )
        assert sold_from_sale(sale) == 7
        assert total_capacity(sale) == 20
        assert available_from_sale(sale) == 13
        assert sale_progress(sale) == 35
        assert not is_sale_sold_out(sale)
        assert should_show_marquee(sale, now=T0)

        sold_out = Sale(is_hot=True, variants=(SaleVariant(discount=10, max_buys=2, bought_count=2),))
        assert is_sale_sold_out(sold_out)
        assert not should_show_marquee(sold_out, now=T0)


class TestTiers:
    def test_best_match_and_next_tier_at_seven(self):
        tier = best_tier(TIERS, 7)
        assert tier.value == 10

        unit = tier_unit_price(tier, 100)
        nxt = calculate_next_tier_savings(7, unit, 100, TIERS)
        assert nxt.qty_needed == 3
        assert nxt.next_tier.value == 20
        assert nxt.potential_unit_price == 80
        assert nxt.savings_per_unit == 10
        assert nxt.potential_savings == 100

    def test_highest_min_qty_wins_over_list_order(self):
        tiers = (TIERS[1], TIERS[0])
        assert best_tier(tiers, 12).min_qty == 10

    def test_max_qty_bounds_tier(self):
        tiers = (PricingTier(min_qty=5, max_qty=9, strategy="amountOff", value=2),)
        assert best_tier(tiers, 9) is not None
        assert best_tier(tiers, 10) is None

    def test_no_next_tier_at_top(self):
        assert calculate_next_tier_savings(12, 80, 100, TIERS) is None

    def test_strategies(self):
        assert tier_unit_price(PricingTier(1, "amountOff", 2.5), 10) == 7.5
        assert tier_unit_price(PricingTier(1, "fixedPrice", 6), 10) == 6
        assert tier_unit_price(PricingTier(1, "percentOff", 10, applied_price=8.5), 10) == 8.5
        assert tier_unit_price(PricingTier(1, "bogus", 1), 10) is None

    def test_unknown_strategy_from_server_is_skipped(self):
        tiers = (PricingTier(5, "bundleDeal", 50), *TIERS)
        assert best_tier(tiers, 7).value == 10
        assert calculate_next_tier_savings(3, 100, 100, tiers).next_tier.min_qty == 5
        assert snapshot_tier((PricingTier(2, "bundleDeal", 50),), 3, 100) is None
        assert quote(100, 7, tiers=(PricingTier(2, "bundleDeal", 50),), now=T0).unit_price == 100

    def test_labels(self):
        assert describe_tier(PricingTier(5, "percentOff", 10)) == "10% off"
        assert describe_tier(PricingTier(5, "amountOff", 2)) == "$2.00 off"
        assert describe_tier(PricingTier(5, "fixedPrice", 8)) == "$8.00 each"
        assert format_tier_range(PricingTier(5, "percentOff", 10, max_qty=9)) == "5-9 units"
        assert format_tier_range(PricingTier(10, "percentOff", 20)) == "10+ units"

    def test_snapshot(self):
        snap = snapshot_tier(TIERS, 7, 100)
        assert snap.min_qty == 5
        assert snap.applied_price == 90
        assert snapshot_tier(TIERS, 2, 100) is None


class TestQuote:
    def test_lower_of_sale_and_tier(self):
        sale = Sale(variants=(SaleVariant(discount=15),))
        assert quote(100, 7, sale=sale, tiers=TIERS, now=T0).unit_price == 85
        q = quote(100, 10, sale=sale, tiers=TIERS, now=T0)
        assert q.unit_price == 80
        assert q.tier is not None
        assert q.discount_amount == 0

    def test_sale_wins_on_equal_price(self):
        sale = Sale(variants=(SaleVariant(discount=10),))
        q = quote(100, 5, sale=sale, tiers=TIERS, now=T0)
        assert q.tier is None
        assert q.sale.has_active_sale
