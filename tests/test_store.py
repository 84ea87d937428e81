from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from cartsync import Attribute
from cartsync.config import Policy
from cartsync.pricing import resolve
from cartsync.store import (
    CartStore,
    FileStorage,
    ItemChanges,
    MemoryStorage,
    StorageError,
    decode_cart,
    encode_cart,
    local_id,
    to_base36,
)

from helpers import RED, SIZE_L, SIZE_M, T0, FakeClock, price, sequential_ids


class BrokenStorage:
    def read(self, key: str) -> str | None:
        raise StorageError("disk on fire")

    def write(self, key: str, blob: str) -> None:
        raise StorageError("disk on fire")

    def remove(self, key: str) -> None:
        raise StorageError("disk on fire")


class TestIdentity:
    def test_same_identity_in_any_attribute_order_merges(self, store: CartStore):
        first = store.add("P1", 2, [SIZE_M, RED], price(10))
        second = store.add("P1", 3, [RED, SIZE_M], price(10))

        items = store.items()
        assert len(items) == 1
        assert second.id == first.id
        assert items[0].quantity == 5
        assert items[0].total_price == 50

    def test_tuple_attributes_are_accepted(self, store: CartStore):
        store.add("P1", 1, [("Size", "M")], price(10))
        store.add("P1", 1, [SIZE_M], price(10))
        assert store.item_count() == 2
        assert len(store.items()) == 1

    def test_different_variants_are_separate_items(self, store: CartStore):
        store.add("P1", 1, [SIZE_M], price(10))
        store.add("P1", 1, [SIZE_L], price(10))
        store.add("P1", 1, [], price(10))
        assert len(store.items()) == 3

    def test_attribute_comparison_is_case_sensitive(self, store: CartStore):
        store.add("P1", 1, [Attribute("Size", "m")], price(10))
        store.add("P1", 1, [SIZE_M], price(10))
        assert len(store.items()) == 2

    def test_insertion_order_is_kept(self, store: CartStore):
        store.add("P2", 1, [], price(4))
        store.add("P1", 1, [], price(10))
        store.add("P2", 1, [], price(4))
        assert [i.product_id for i in store.items()] == ["P2", "P1"]

    def test_non_positive_quantity_rejected(self, store: CartStore):
        with pytest.raises(ValueError):
            store.add("P1", 0, [], price(10))
        with pytest.raises(ValueError):
            store.update("missing", ItemChanges(quantity=-1))


class TestExpiry:
    def test_item_older_than_ttl_is_purged_and_stays_gone(self, store: CartStore, clock: FakeClock):
        old = store.add("P1", 1, [], price(10))
        clock.advance(hours=23)
        fresh = store.add("P2", 1, [], price(4))
        clock.advance(hours=1, seconds=1)

        assert [i.id for i in store.items()] == [fresh.id]
        clock.advance(minutes=1)
        assert store.find(old.id) is None

    def test_item_exactly_at_ttl_is_kept(self, store: CartStore, clock: FakeClock):
        store.add("P1", 1, [], price(10))
        clock.advance(hours=24)
        assert store.has_items()

    def test_adding_again_renews_ttl(self, store: CartStore, clock: FakeClock):
        store.add("P1", 1, [], price(10))
        clock.advance(hours=20)
        store.add("P1", 1, [], price(10))
        clock.advance(hours=20)
        assert store.item_count() == 2

    def test_purge_is_persisted(self, storage: MemoryStorage, store: CartStore, clock: FakeClock):
        store.add("P1", 1, [], price(10))
        clock.advance(days=2)
        store.read()
        assert json.loads(storage.read(store.key))["items"] == []

    def test_custom_ttl(self, storage: MemoryStorage, clock: FakeClock):
        store = CartStore(storage, Policy().with_item_ttl(hours=1), now=clock)
        store.add("P1", 1, [], price(10))
        clock.advance(hours=2)
        assert not store.has_items()


class TestFaults:
    def test_corrupted_json_reads_as_empty(self, storage: MemoryStorage, store: CartStore):
        storage.write(store.key, "{not json")
        assert store.items() == ()

    def test_wrong_document_shape_reads_as_empty(self, storage: MemoryStorage, store: CartStore):
        storage.write(store.key, json.dumps({"items": "nope"}))
        assert store.items() == ()

    @pytest.mark.parametrize("last_updated", [5, ["2024-05-01"], {"at": 1}, True])
    def test_non_string_last_updated_falls_back_to_now(
        self, storage: MemoryStorage, store: CartStore, last_updated
    ):
        storage.write(store.key, json.dumps({"items": [], "lastUpdated": last_updated}))
        assert store.read().last_updated == T0
        assert store.items() == ()

    def test_broken_storage_never_raises(self, clock: FakeClock):
        store = CartStore(BrokenStorage(), now=clock)
        item = store.add("P1", 1, [], price(10))
        assert item.quantity == 1
        assert store.items() == ()
        store.clear()

    def test_quota_exceeded_keeps_previous_cart(self, clock: FakeClock):
        storage = MemoryStorage(quota=400)
        store = CartStore(storage, now=clock, id_factory=sequential_ids())
        store.add("P1", 1, [], price(10))
        seen = []
        store.subscribe(seen.append)

        for n in range(20):
            store.add(f"BIG-{n}", 1, [("Engraving", "x" * 50)], price(1))

        assert len(store.items()) < 20
        assert store.items()[0].product_id == "P1"
        assert len(seen) == len(store.items()) - 1


class TestUpdate:
    def test_quantity_recomputes_total(self, store: CartStore):
        item = store.add("P1", 2, [], price(10))
        updated = store.update(item.id, ItemChanges(quantity=5))
        assert updated.quantity == 5
        assert updated.total_price == 50

    def test_explicit_total_wins(self, store: CartStore):
        item = store.add("P1", 2, [], price(10))
        updated = store.update(item.id, ItemChanges(quantity=3, total_price=27))
        assert updated.total_price == 27

    def test_unknown_item_returns_none(self, store: CartStore):
        assert store.update("nope", ItemChanges(quantity=1)) is None

    def test_server_id_can_be_cleared(self, store: CartStore):
        item = store.add("P1", 1, [], price(10))
        linked = store.update(item.id, ItemChanges(server_item_id="srv_1"))
        assert linked.server_item_id == "srv_1"
        assert store.update(item.id, ItemChanges(quantity=2)).server_item_id == "srv_1"
        assert store.update(item.id, ItemChanges(server_item_id=None)).server_item_id is None

    def test_attribute_collision_folds_items(self, store: CartStore):
        medium = store.add("P1", 2, [SIZE_M], price(10))
        large = store.add("P1", 1, [SIZE_L], price(10))

        folded = store.update(large.id, ItemChanges(attributes=(SIZE_M,)))

        assert folded.id == medium.id
        assert folded.quantity == 3
        assert folded.total_price == 30
        assert [i.id for i in store.items()] == [medium.id]

    def test_update_refreshes_added_at(self, store: CartStore, clock: FakeClock):
        item = store.add("P1", 1, [], price(10))
        clock.advance(hours=5)
        assert store.update(item.id, ItemChanges(quantity=2)).added_at == clock()


class TestObservers:
    def test_every_write_publishes(self, store: CartStore):
        seen = []
        store.subscribe(lambda cart: seen.append(len(cart.items)))

        item = store.add("P1", 1, [], price(10))
        store.add("P2", 1, [], price(4))
        store.remove(item.id)
        store.clear()

        assert seen == [1, 2, 1, 0]

    def test_unsubscribe(self, store: CartStore):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        store.add("P1", 1, [], price(10))
        unsubscribe()
        store.add("P1", 1, [], price(10))
        assert len(seen) == 1

    def test_failing_subscriber_does_not_block_others(self, store: CartStore):
        seen = []

        def explode(cart):
            raise RuntimeError("boom")

        store.subscribe(explode)
        store.subscribe(seen.append)
        store.add("P1", 1, [], price(10))

        assert len(seen) == 1
        assert store.has_items()

    def test_purge_on_read_does_not_publish(self, store: CartStore, clock: FakeClock):
        store.add("P1", 1, [], price(10))
        seen = []
        store.subscribe(seen.append)
        clock.advance(days=2)
        store.read()
        assert seen == []


class TestQueries:
    def test_totals(self, store: CartStore):
        store.add("P1", 2, [], price(10))
        store.add("P2", 3, [], price(4))
        totals = store.totals()
        assert totals.item_count == 5
        assert totals.subtotal == 32
        assert totals.total == 32
        assert totals.total_discount == 0

    def test_remove_missing_is_false(self, store: CartStore):
        assert store.remove("nope") is False


class TestCodec:
    def test_sale_dates_without_timezone_are_utc(self):
        blob = json.dumps(
            {
                "items": [
                    {
                        "_id": "a",
                        "product": "P1",
                        "qty": 1,
                        "unitPrice": 100,
                        "addedAt": "2024-05-01T10:00:00.000Z",
                        "productDetails": {
                            "_id": "P1",
                            "price": 100,
                            "sale": {
                                "startDate": "2024-01-01T00:00:00",
                                "endDate": "2024-12-31T00:00:00",
                                "variants": [{"discount": 10}],
                            },
                        },
                    }
                ]
            }
        )
        [item] = decode_cart(blob, now=T0).items
        sale = item.product_details.sale
        assert sale.start_date == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert sale.end_date.tzinfo is timezone.utc
        assert resolve(item, now=T0).discounted_price == 90
        assert not resolve(item, now=T0 + timedelta(days=365)).has_active_sale
        resolve(item)

    def test_missing_optional_fields_default(self):
        blob = json.dumps(
            {
                "items": [{"_id": "a", "product": "P1", "qty": 2, "unitPrice": 5, "someNewField": 1}],
                "lastUpdated": "2024-05-01T10:00:00.000Z",
            }
        )
        cart = decode_cart(blob, now=T0)
        item = cart.items[0]
        assert item.total_price == 10
        assert item.attributes == ()
        assert item.is_available
        assert item.added_at.hour == 10

    def test_malformed_item_is_dropped(self):
        blob = json.dumps({"items": [{"_id": "a", "product": "P1", "qty": 0}, {"_id": "b", "product": "P2", "qty": 1}]})
        cart = decode_cart(blob, now=T0)
        assert [i.id for i in cart.items] == ["b"]
        assert cart.items[0].added_at == T0

    def test_document_is_camel_case(self, store: CartStore, storage: MemoryStorage):
        store.add("P1", 1, [SIZE_M], price(10))
        document = json.loads(storage.read(store.key))
        item = document["items"][0]
        assert set(item) >= {"_id", "product", "qty", "selectedAttributes", "unitPrice", "totalPrice", "addedAt"}
        assert document["lastUpdated"].endswith("Z")

    def test_encode_then_decode_keeps_items(self, store: CartStore):
        store.add("P1", 2, [SIZE_M, RED], price(10))
        cart = store.read()
        assert decode_cart(encode_cart(cart), now=T0) == cart


class TestIds:
    def test_local_id_format(self):
        ident = local_id(T0)
        prefix, millis, suffix = ident.split("_")
        assert prefix == "local"
        assert millis == str(int(T0.timestamp() * 1000))
        assert len(suffix) == 9

    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"


class TestFileStorage:
    def test_roundtrip_and_remove(self, tmp_path):
        storage = FileStorage(tmp_path / "carts")
        assert storage.read("cart") is None
        storage.write("cart", "{}")
        assert storage.read("cart") == "{}"
        storage.remove("cart")
        storage.remove("cart")
        assert storage.read("cart") is None

    def test_rejects_path_keys(self, tmp_path):
        with pytest.raises(ValueError):
            FileStorage(tmp_path).write("../escape", "{}")
