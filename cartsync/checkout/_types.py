"""
Checkout types — success and correction payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

from cartsync.store._types import CartSnapshot

# ═══════════════════════════════════════════════════════════════════════════════
# Correction Details
# ═══════════════════════════════════════════════════════════════════════════════


class ChangeContext(StrEnum):
    ITEM = "item"
    COUPON = "coupon"
    SUBTOTAL = "subtotal"
    TOTAL = "total"
    SHIPPING = "shipping"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class ChangeDetail:
    """One server-detected discrepancy, e.g. field="unit_price", 10 → 8."""

    field: str
    previous: float | str | None
    current: float | str | None
    message: str
    context: ChangeContext = ChangeContext.OTHER

    @property
    def label(self) -> str:
        return self.field.replace("_", " ")


@dataclass(frozen=True, slots=True)
class CouponInfo:
    code: str
    discount_amount: float | None = None
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class ShippingChange:
    reason: str
    previous_cost: float
    current_cost: float


@dataclass(frozen=True, slots=True)
class ProductIssue:
    product_id: str
    message: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class CheckoutErrors:
    """Per-area validation errors reported alongside a correction."""

    products: tuple[ProductIssue, ...] = ()
    coupons: tuple[CouponInfo, ...] = ()
    shipping: ShippingChange | None = None
    total_message: str | None = None

    @property
    def has_product_issues(self) -> bool:
        return bool(self.products)


@dataclass(frozen=True, slots=True)
class CorrectedCart:
    """Server's corrected cart; snapshot is None when only coupons/shipping changed."""

    validated_coupons: tuple[CouponInfo, ...] = ()
    rejected_coupons: tuple[CouponInfo, ...] = ()
    coupon_discount: float = 0
    status: str | None = None
    snapshot: CartSnapshot | None = None


@dataclass(frozen=True, slots=True)
class CorrectionSummary:
    items_remaining: int
    new_subtotal: float
    new_total: float
    shipping_cost: float
    delivery_type: str
    coupon_discount: float = 0


@dataclass(frozen=True, slots=True)
class PendingCorrection:
    """
    A checkout the server adjusted instead of placing.

    Must be accepted before checkout can proceed.
    """

    corrected_cart: CorrectedCart
    changes: tuple[str, ...] = ()
    change_details: tuple[ChangeDetail, ...] = ()
    summary: CorrectionSummary | None = None
    errors: CheckoutErrors | None = None
    shipping_cost: float | None = None
    delivery_type: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Success
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentInfo:
    payment_url: str | None = None
    reference: str | None = None
    transaction_id: str | None = None


@dataclass(frozen=True, slots=True)
class CheckoutSuccess:
    order_id: str
    subtotal: float | None = None
    total: float | None = None
    payment: PaymentInfo | None = None

    @property
    def needs_redirect(self) -> bool:
        return self.payment is not None and bool(self.payment.payment_url)


CheckoutResponse: TypeAlias = PendingCorrection | CheckoutSuccess


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ChangeContext",
    "ChangeDetail",
    "CouponInfo",
    "ShippingChange",
    "ProductIssue",
    "CheckoutErrors",
    "CorrectedCart",
    "CorrectionSummary",
    "PendingCorrection",
    "PaymentInfo",
    "CheckoutSuccess",
    "CheckoutResponse",
)
