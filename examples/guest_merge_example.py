"""
Guest Merge Example — a guest cart joins the server cart at login.

Run: python -m examples.guest_merge_example
"""

from cartsync import Attribute
from cartsync import pricing as P
from cartsync import store as S

from examples._infra import banner, run, shop, show

SIZE_M = Attribute("Size", "M")


async def main() -> None:
    banner("Guest merge")
    s = shop()

    # 1. Guest shopping stays local
    print("\n1. Guest adds items (no server calls):")
    await s.engine.add_item("P1", 2, [SIZE_M], S.PriceSnapshot(unit_price=10))
    await s.engine.add_item("P2", 1, [], S.PriceSnapshot(unit_price=4))
    show(s.engine.cart_view())
    print(f"   server calls: {len(s.gateway.calls)}")

    # 2. Server cart from an earlier visit, with a sale running
    s.gateway.seed("P1", 5, [SIZE_M])
    s.gateway.seed("P2", 3)
    s.gateway.set_sale("P1", P.Sale(id="S1", variants=(P.SaleVariant(discount=20),)))

    # 3. Login merges once: local quantities, server prices
    print("\n2. Login and merge:")
    s.session.login()
    outcome = await s.engine.merge_guest_cart()
    print(f"   status={outcome.status} items={outcome.items}")
    show(s.engine.cart_view())

    print("\n3. Second merge in the same session:")
    print(f"   status={(await s.engine.merge_guest_cart()).status}")

    # 4. Stock runs out on the server
    print("\n4. Size M sells out, then sync:")
    s.gateway.set_stock("P1", 0, variant=SIZE_M)
    sync = await s.engine.sync_from_server()
    print(f"   updated={sync.updated} written={sync.written}")
    view = s.engine.cart_view()
    show(view)
    print(f"   unavailable: {[i.product_id for i in view.unavailable]}")


if __name__ == "__main__":
    run(main)
