"""
Checkout wire models — response JSON → success or correction.

The two outcomes are told apart by `needsUpdate`, never by HTTP status.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError

from cartsync._types import parse_iso
from cartsync.checkout._types import (
    ChangeContext,
    ChangeDetail,
    CheckoutErrors,
    CheckoutResponse,
    CheckoutSuccess,
    CorrectedCart,
    CorrectionSummary,
    CouponInfo,
    PaymentInfo,
    PendingCorrection,
    ProductIssue,
    ShippingChange,
)
from cartsync.store._codec import (
    AttributeDoc,
    Doc,
    PricingTierDoc,
    ProductDetailsDoc,
    ProductSnapshotDoc,
)
from cartsync.store._types import CartSnapshot, SnapshotItem


class CheckoutDecodeError(ValueError):
    """Checkout response matches neither the success nor the correction shape."""


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


class SnapshotItemDoc(Doc):
    id: str | None = Field(default=None, alias="_id")
    product: str
    qty: int = Field(gt=0)
    unit_price: float
    total_price: float | None = None
    selected_attributes: list[AttributeDoc] = []
    product_snapshot: ProductSnapshotDoc | None = None
    sale: str | None = None
    sale_variant_index: int | None = None
    applied_discount: float | None = None
    discount_amount: float | None = None
    pricing_tier: PricingTierDoc | None = None
    server_item_id: str | None = None
    added_at: str | None = None
    product_details: ProductDetailsDoc | None = None

    def to_domain(self) -> SnapshotItem:
        return SnapshotItem(
            product_id=self.product,
            quantity=self.qty,
            unit_price=self.unit_price,
            id=self.id,
            total_price=self.total_price,
            attributes=tuple(a.to_domain() for a in self.selected_attributes),
            product_snapshot=self.product_snapshot.to_domain() if self.product_snapshot else None,
            sale=self.sale,
            sale_variant_index=self.sale_variant_index,
            applied_discount_percent=self.applied_discount,
            discount_amount=self.discount_amount,
            pricing_tier=self.pricing_tier.to_snapshot() if self.pricing_tier else None,
            server_item_id=self.server_item_id,
            added_at=parse_iso(self.added_at),
            product_details=self.product_details.to_domain() if self.product_details else None,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Correction
# ═══════════════════════════════════════════════════════════════════════════════


class CouponInfoDoc(Doc):
    code: str
    discount_amount: float | None = None
    reason: str | None = None

    def to_domain(self) -> CouponInfo:
        return CouponInfo(code=self.code, discount_amount=self.discount_amount, reason=self.reason)


class ChangeDetailDoc(Doc):
    field: str
    previous: float | str | None = None
    current: float | str | None = None
    message: str
    context: str | None = None

    def to_domain(self) -> ChangeDetail:
        try:
            context = ChangeContext(self.context) if self.context else ChangeContext.OTHER
        except ValueError:
            context = ChangeContext.OTHER
        return ChangeDetail(
            field=self.field,
            previous=self.previous,
            current=self.current,
            message=self.message,
            context=context,
        )


class CorrectedCartDoc(Doc):
    validated_coupons: list[CouponInfoDoc] = []
    rejected_coupons: list[CouponInfoDoc] = []
    coupon_discount: float = 0
    status: str | None = None
    items: list[SnapshotItemDoc] | None = None
    subtotal: float | None = None
    total: float | None = None
    total_discount: float | None = None

    def to_domain(self) -> CorrectedCart:
        snapshot = None
        if self.items is not None:
            snapshot = CartSnapshot(
                items=tuple(i.to_domain() for i in self.items),
                subtotal=self.subtotal,
                total=self.total,
                total_discount=self.total_discount,
            )
        return CorrectedCart(
            validated_coupons=tuple(c.to_domain() for c in self.validated_coupons),
            rejected_coupons=tuple(c.to_domain() for c in self.rejected_coupons),
            coupon_discount=self.coupon_discount,
            status=self.status,
            snapshot=snapshot,
        )


class SummaryDoc(Doc):
    items_remaining: int = 0
    new_subtotal: float = 0
    new_total: float = 0
    shipping_cost: float = 0
    delivery_type: str = "shipping"
    coupon_discount: float = 0

    def to_domain(self) -> CorrectionSummary:
        return CorrectionSummary(
            items_remaining=self.items_remaining,
            new_subtotal=self.new_subtotal,
            new_total=self.new_total,
            shipping_cost=self.shipping_cost,
            delivery_type=self.delivery_type,
            coupon_discount=self.coupon_discount,
        )


class ProductIssueDoc(Doc):
    product_id: str = Field(alias="productId")
    message: str
    name: str | None = None


class ShippingChangeDoc(Doc):
    reason: str = ""
    previous_cost: float = 0
    current_cost: float = 0


class TotalErrorDoc(Doc):
    message: str


class CheckoutErrorsDoc(Doc):
    products: list[ProductIssueDoc] = []
    coupons: list[CouponInfoDoc] = []
    shipping: ShippingChangeDoc | None = None
    total: TotalErrorDoc | None = None

    def to_domain(self) -> CheckoutErrors:
        shipping = self.shipping
        return CheckoutErrors(
            products=tuple(
                ProductIssue(product_id=p.product_id, message=p.message, name=p.name)
                for p in self.products
            ),
            coupons=tuple(c.to_domain() for c in self.coupons),
            shipping=(
                ShippingChange(shipping.reason, shipping.previous_cost, shipping.current_cost)
                if shipping
                else None
            ),
            total_message=self.total.message if self.total else None,
        )


class CorrectionDoc(Doc):
    needs_update: bool
    corrected_cart: CorrectedCartDoc = CorrectedCartDoc()
    changes: list[str] = []
    change_details: list[ChangeDetailDoc] = []
    summary: SummaryDoc | None = None
    errors: CheckoutErrorsDoc | None = None
    shipping_cost: float | None = None
    delivery_type: str | None = None

    def to_domain(self) -> PendingCorrection:
        return PendingCorrection(
            corrected_cart=self.corrected_cart.to_domain(),
            changes=tuple(self.changes),
            change_details=tuple(d.to_domain() for d in self.change_details),
            summary=self.summary.to_domain() if self.summary else None,
            errors=self.errors.to_domain() if self.errors else None,
            shipping_cost=self.shipping_cost,
            delivery_type=self.delivery_type,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Success
# ═══════════════════════════════════════════════════════════════════════════════


class OrderDoc(Doc):
    id: str | None = Field(default=None, alias="_id")
    subtotal: float | None = None
    total: float | None = None


class PaymentDoc(Doc):
    payment_url: str | None = None
    reference: str | None = None
    transaction_id: str | None = None


class SuccessDoc(Doc):
    order_id: str
    order: OrderDoc | None = None
    payment: PaymentDoc | None = None

    def to_domain(self) -> CheckoutSuccess:
        order = self.order or OrderDoc()
        payment = self.payment
        return CheckoutSuccess(
            order_id=self.order_id,
            subtotal=order.subtotal,
            total=order.total,
            payment=(
                PaymentInfo(
                    payment_url=payment.payment_url,
                    reference=payment.reference,
                    transaction_id=payment.transaction_id,
                )
                if payment
                else None
            ),
        )


def parse_checkout_response(body: Any) -> CheckoutResponse:
    """
    Decode a checkout response.

    needsUpdate true → PendingCorrection; otherwise CheckoutSuccess.
    Raises CheckoutDecodeError for anything else.
    """
    if not isinstance(body, dict):
        raise CheckoutDecodeError(f"Checkout response must be an object, got {type(body).__name__}")
    try:
        if body.get("needsUpdate") is True:
            return CorrectionDoc.model_validate(body).to_domain()
        return SuccessDoc.model_validate(body).to_domain()
    except ValidationError as e:
        raise CheckoutDecodeError(f"Malformed checkout response: {e}") from e


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CheckoutDecodeError",
    "SnapshotItemDoc",
    "CouponInfoDoc",
    "ChangeDetailDoc",
    "CorrectedCartDoc",
    "SummaryDoc",
    "CheckoutErrorsDoc",
    "CorrectionDoc",
    "SuccessDoc",
    "parse_checkout_response",
)
