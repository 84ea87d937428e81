"""
Checkout correction flow — server adjustments must be accepted before ordering.

    from cartsync import checkout as C

    flow = C.CorrectionFlow(engine)
    result = await flow.submit(C.CheckoutRequest(shipping_method="express"))

    if flow.pending:                 # server corrected prices, coupons or shipping
        for line in flow.messages():
            print(line)
        await flow.accept()          # corrected snapshot replaces the local cart

    flow.can_checkout()              # False while a correction is pending or items are unavailable
"""

from cartsync.checkout._types import (
    ChangeContext,
    ChangeDetail,
    CouponInfo,
    ShippingChange,
    ProductIssue,
    CheckoutErrors,
    CorrectedCart,
    CorrectionSummary,
    PendingCorrection,
    PaymentInfo,
    CheckoutSuccess,
    CheckoutResponse,
)
from cartsync.checkout._wire import CheckoutDecodeError, parse_checkout_response
from cartsync.checkout._flow import (
    BlockReason,
    CheckoutBlocked,
    CheckoutRequest,
    CorrectionFlow,
)

__all__ = (
    # Correction
    "ChangeContext",
    "ChangeDetail",
    "CouponInfo",
    "ShippingChange",
    "ProductIssue",
    "CheckoutErrors",
    "CorrectedCart",
    "CorrectionSummary",
    "PendingCorrection",
    # Success
    "PaymentInfo",
    "CheckoutSuccess",
    "CheckoutResponse",
    # Wire
    "CheckoutDecodeError",
    "parse_checkout_response",
    # Flow
    "BlockReason",
    "CheckoutBlocked",
    "CheckoutRequest",
    "CorrectionFlow",
)
