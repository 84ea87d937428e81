"""
Checkout Correction Example — the server corrects the cart before an order.

Run: python -m examples.checkout_correction_example
"""

from kungfu import Ok, Error

from cartsync import Attribute
from cartsync import checkout as C
from cartsync import store as S

from examples._infra import banner, run, shop, show

CORRECTION = {
    "needsUpdate": True,
    "shippingCost": 30,
    "correctedCart": {
        "rejectedCoupons": [{"code": "SAVE10", "reason": "Coupon expired"}],
        "items": [
            {
                "_id": "srv_1",
                "product": "P1",
                "qty": 1,
                "unitPrice": 8,
                "totalPrice": 8,
                "selectedAttributes": [{"name": "Size", "value": "M"}],
            }
        ],
        "subtotal": 8,
        "total": 8,
    },
    "changes": ["Tee price changed", "Only 1 Tee left"],
    "changeDetails": [
        {"field": "unitPrice", "previous": 10, "current": 8, "message": "Tee is now $8.00", "context": "item"},
        {"field": "qty", "previous": 2, "current": 1, "message": "Only 1 Tee left", "context": "item"},
    ],
    "summary": {"itemsRemaining": 1, "newSubtotal": 8, "newTotal": 38, "shippingCost": 30},
}


async def main() -> None:
    banner("Checkout correction")
    s = shop()
    flow = C.CorrectionFlow(s.engine)

    # 1. Guests can't check out
    print("\n1. Guest gate:")
    print(f"   {flow.blockers().message}")

    s.session.login()
    await s.engine.add_item("P1", 2, [Attribute("Size", "M")], S.PriceSnapshot(unit_price=10))

    # 2. Server answers with a correction
    print("\n2. Submit, server corrects:")
    s.gateway.queue_checkout_response(CORRECTION)
    match await flow.submit(C.CheckoutRequest(coupon_codes=("SAVE10",))):
        case Ok(C.PendingCorrection() as correction):
            print(f"   new total: {correction.summary.new_total:.2f}")
            for line in flow.messages():
                print(f"   - {line}")
        case Ok(other):
            print(f"   unexpected: {other}")
        case Error(e):
            print(f"   error: {e}")

    # 3. Resubmitting before accepting is refused
    print("\n3. Submit again without accepting:")
    match await flow.submit():
        case Error(C.CheckoutBlocked() as blocked):
            print(f"   blocked: {blocked.message}")
        case other:
            print(f"   unexpected: {other}")

    # 4. Accept, then the order goes through
    print("\n4. Accept and resubmit:")
    await flow.accept()
    show(s.engine.cart_view())
    match await flow.submit():
        case Ok(C.CheckoutSuccess() as success):
            print(f"   order={success.order_id} pay at {success.payment.payment_url}")
        case other:
            print(f"   unexpected: {other}")
    print(f"   local cart empty: {not s.store.has_items()}")


if __name__ == "__main__":
    run(main)
