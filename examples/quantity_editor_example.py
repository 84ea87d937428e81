"""
Quantity Editor Example — rapid +/- clicks, one server update.

Run: python -m examples.quantity_editor_example
"""

import asyncio

from cartsync import engine as E
from cartsync import store as S
from cartsync.config import Policy

from examples._infra import banner, run, shop, show


async def main() -> None:
    banner("Optimistic quantity")
    s = shop(Policy().with_debounce(milliseconds=300))
    s.session.login()
    item = await s.engine.add_item("P2", 1, [], S.PriceSnapshot(unit_price=4))
    editor = E.QuantityEditor(s.engine)

    # 1. Clicks update the display immediately
    print("\n1. Five quick clicks on +:")
    for _ in range(5):
        state = editor.increment(item.id)
        print(f"   displayed={state.displayed} committed={state.committed}")
        await asyncio.sleep(0.05)
    print(f"   optimistic subtotal: {editor.optimistic_subtotal():.2f}")

    # 2. The window closes, one update goes out
    print("\n2. After the debounce window:")
    await asyncio.sleep(0.4)
    await editor.debouncer.wait_idle()
    print(f"   update_item calls: {s.gateway.count('update_item')}")
    show(s.engine.cart_view())

    # 3. Back to the committed value cancels the pending commit
    print("\n3. + then - before the window closes:")
    editor.increment(item.id)
    editor.decrement(item.id)
    await editor.flush()
    print(f"   update_item calls: {s.gateway.count('update_item')}")

    await editor.close()


if __name__ == "__main__":
    run(main)
