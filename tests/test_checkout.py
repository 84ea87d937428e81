from __future__ import annotations

import asyncio

import pytest
from kungfu import Error, Ok

from cartsync.checkout import (
    BlockReason,
    ChangeContext,
    CheckoutBlocked,
    CheckoutDecodeError,
    CheckoutRequest,
    CheckoutSuccess,
    CorrectionFlow,
    PendingCorrection,
    parse_checkout_response,
)
from cartsync.engine import CartSession, ReconciliationEngine
from cartsync.gateway import GatewayError, GatewayErrorKind, MemoryGateway
from cartsync.store import CartStore

from helpers import SIZE_M, price, unwrap, unwrap_error


def correction_payload(**overrides):
    payload = {
        "needsUpdate": True,
        "shippingCost": 30,
        "deliveryType": "shipping",
        "correctedCart": {
            "validatedCoupons": [],
            "rejectedCoupons": [{"code": "SAVE10", "reason": "Coupon expired"}],
            "couponDiscount": 0,
            "status": "active",
            "items": [
                {
                    "_id": "srv_9",
                    "product": "P1",
                    "qty": 1,
                    "unitPrice": 8,
                    "totalPrice": 8,
                    "selectedAttributes": [{"name": "Size", "value": "M"}],
                    "serverItemId": "srv_9",
                }
            ],
            "subtotal": 8,
            "total": 8,
        },
        "changes": ["Tee price changed"],
        "changeDetails": [
            {
                "field": "unit_price",
                "previous": 10,
                "current": 8,
                "message": "Tee is now $8.00",
                "context": "item",
            }
        ],
        "summary": {
            "itemsRemaining": 1,
            "newSubtotal": 8,
            "newTotal": 38,
            "shippingCost": 30,
            "deliveryType": "shipping",
            "couponDiscount": 0,
        },
        "errors": {
            "products": [{"productId": "P1", "message": "Only 1 left", "name": "Tee"}],
            "coupons": [{"code": "SAVE10", "reason": "Coupon expired"}],
            "shipping": {"reason": "Zone changed", "previousCost": 20, "currentCost": 30},
        },
    }
    payload.update(overrides)
    return payload


class TestParse:
    def test_correction(self):
        response = parse_checkout_response(correction_payload())

        assert isinstance(response, PendingCorrection)
        assert response.summary.new_total == 38
        assert response.corrected_cart.rejected_coupons[0].reason == "Coupon expired"
        [item] = response.corrected_cart.snapshot.items
        assert item.id == "srv_9"
        assert item.quantity == 1
        assert item.attributes == (SIZE_M,)
        assert response.change_details[0].context is ChangeContext.ITEM
        assert response.errors.shipping.current_cost == 30
        assert response.errors.has_product_issues

    def test_success(self):
        response = parse_checkout_response(
            {
                "orderId": "o1",
                "order": {"_id": "o1", "subtotal": 20, "total": 50},
                "payment": {"paymentUrl": "https://pay.example/r1", "reference": "r1"},
            }
        )
        assert isinstance(response, CheckoutSuccess)
        assert response.total == 50
        assert response.needs_redirect

    def test_unknown_context_falls_back(self):
        payload = correction_payload(
            changeDetails=[{"field": "total", "message": "Total changed", "context": "mystery"}]
        )
        response = parse_checkout_response(payload)
        assert response.change_details[0].context is ChangeContext.OTHER

    def test_correction_without_items_has_no_snapshot(self):
        payload = correction_payload(correctedCart={"couponDiscount": 5})
        response = parse_checkout_response(payload)
        assert response.corrected_cart.snapshot is None
        assert response.corrected_cart.coupon_discount == 5

    @pytest.mark.parametrize("body", [None, [], {"foo": 1}, {"needsUpdate": True, "changes": "nope"}])
    def test_malformed(self, body):
        with pytest.raises(CheckoutDecodeError):
            parse_checkout_response(body)


class TestGate:
    def test_guest_with_empty_cart_is_blocked(self, engine: ReconciliationEngine):
        flow = CorrectionFlow(engine)
        blocked = flow.blockers()
        assert set(blocked.reasons) == {BlockReason.NOT_AUTHENTICATED, BlockReason.EMPTY_CART}
        assert not flow.can_checkout()

        result = asyncio.run(flow.submit())
        assert isinstance(unwrap_error(result), CheckoutBlocked)

    def test_unavailable_items_block(
        self,
        engine: ReconciliationEngine,
        gateway: MemoryGateway,
        session: CartSession,
    ):
        async def main():
            session.login()
            await engine.add_item("P1", 3, [SIZE_M], price(10))
            gateway.set_stock("P1", 0, variant=SIZE_M)
            await engine.sync_from_server()

        asyncio.run(main())
        blocked = CorrectionFlow(engine).blockers()
        assert blocked.reasons == (BlockReason.UNAVAILABLE_ITEMS,)
        assert len(blocked.unavailable_items) == 1
        assert "unavailable" in blocked.message


class TestCorrectionFlow:
    def test_correction_must_be_accepted_before_checkout(
        self,
        engine: ReconciliationEngine,
        gateway: MemoryGateway,
        session: CartSession,
        store: CartStore,
    ):
        flow = CorrectionFlow(engine)

        async def main():
            session.login()
            await engine.add_item("P1", 2, [SIZE_M], price(10))
            gateway.queue_checkout_response(correction_payload())

            first = await flow.submit(CheckoutRequest(shipping_method="express"))
            assert isinstance(unwrap(first), PendingCorrection)
            assert flow.pending is not None
            assert not flow.can_checkout()

            blocked = unwrap_error(await flow.submit())
            assert blocked.reasons == (BlockReason.PENDING_CORRECTION,)

            cart = await flow.accept()
            assert flow.pending is None
            assert [(i.product_id, i.quantity) for i in cart.items] == [("P1", 1)]
            assert cart.items[0].server_item_id == gateway.cart.items[0].id

            return await flow.submit()

        success = unwrap(asyncio.run(main()))

        assert isinstance(success, CheckoutSuccess)
        assert success.payment.reference is not None
        assert store.items() == ()
        assert gateway.count("submit_checkout") == 2

    def test_messages_prefer_change_details(self, engine: ReconciliationEngine, gateway: MemoryGateway, session: CartSession):
        flow = CorrectionFlow(engine)

        async def main():
            session.login()
            await engine.add_item("P1", 1, [], price(10))
            gateway.queue_checkout_response(correction_payload())
            await flow.submit()
            detailed = flow.messages()
            await flow.accept()
            gateway.queue_checkout_response(correction_payload(changeDetails=[]))
            await flow.submit()
            return detailed, flow.messages()

        detailed, plain = asyncio.run(main())
        assert detailed == ("unit price: Tee is now $8.00",)
        assert plain == ("Tee price changed",)

    def test_correction_without_snapshot_resyncs_from_server(
        self,
        engine: ReconciliationEngine,
        gateway: MemoryGateway,
        session: CartSession,
        store: CartStore,
    ):
        flow = CorrectionFlow(engine)

        async def main():
            session.login()
            item = await engine.add_item("P2", 2, [], price(4))
            gateway.set_price("P2", 3)
            gateway.queue_checkout_response(correction_payload(correctedCart={"couponDiscount": 0}))
            await flow.submit()
            await flow.accept()
            return item

        item = asyncio.run(main())
        assert store.find(item.id).unit_price == 3
        assert flow.can_checkout()

    def test_accept_without_pending_raises(self, engine: ReconciliationEngine):
        with pytest.raises(ValueError):
            asyncio.run(CorrectionFlow(engine).accept())

    def test_request_payload(self, engine: ReconciliationEngine, gateway: MemoryGateway, session: CartSession):
        flow = CorrectionFlow(engine)

        async def main():
            session.login()
            await engine.add_item("P1", 2, [SIZE_M], price(10))
            return await flow.submit(CheckoutRequest(shipping_method="pickup", coupon_codes=("SAVE10",)))

        asyncio.run(main())
        [call] = [c for c in gateway.calls if c.method == "submit_checkout"]
        payload = call.args[0]
        assert payload["shippingMethod"] == "pickup"
        assert payload["couponCodes"] == ["SAVE10"]
        assert payload["items"] == [
            {
                "productId": "P1",
                "qty": 2,
                "selectedAttributes": [{"name": "Size", "value": "M"}],
                "unitPrice": 10,
            }
        ]

    def test_gateway_failure_is_returned(
        self,
        engine: ReconciliationEngine,
        gateway: MemoryGateway,
        session: CartSession,
        store: CartStore,
    ):
        flow = CorrectionFlow(engine)

        async def main():
            session.login()
            await engine.add_item("P1", 1, [], price(10))
            gateway.fail_next(GatewayErrorKind.HTTP)
            return await flow.submit()

        match asyncio.run(main()):
            case Error(GatewayError() as e):
                assert e.kind is GatewayErrorKind.HTTP
            case other:
                pytest.fail(f"unexpected {other!r}")
        assert store.has_items()

    def test_undecodable_response_is_a_decode_error(
        self,
        engine: ReconciliationEngine,
        gateway: MemoryGateway,
        session: CartSession,
    ):
        flow = CorrectionFlow(engine)

        async def main():
            session.login()
            await engine.add_item("P1", 1, [], price(10))
            gateway.queue_checkout_response({"unexpected": True})
            return await flow.submit()

        error = unwrap_error(asyncio.run(main()))
        assert error.kind is GatewayErrorKind.DECODE
        assert flow.pending is None

    def test_success_clears_local_cart(self, engine: ReconciliationEngine, session: CartSession, store: CartStore):
        async def main():
            session.login()
            await engine.add_item("P1", 1, [], price(10))
            return await CorrectionFlow(engine).submit()

        match asyncio.run(main()):
            case Ok(CheckoutSuccess() as success):
                assert success.order_id.startswith("order_")
            case other:
                pytest.fail(f"unexpected {other!r}")
        assert not store.has_items()
