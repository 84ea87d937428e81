from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from cartsync.store import CartBlobMixin, CartStore, SQLAlchemyStorage, StorageError

from helpers import SIZE_M, FakeClock, price


class Base(DeclarativeBase):
    pass


class CartRow(Base, CartBlobMixin):
    __tablename__ = "carts"


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield sessionmaker(engine)
    engine.dispose()


class TestSQLAlchemyStorage:
    def test_write_read_remove(self, session_factory):
        storage = SQLAlchemyStorage(session_factory, CartRow)
        assert storage.read("k") is None

        storage.write("k", "one")
        storage.write("k", "two")
        assert storage.read("k") == "two"

        storage.remove("k")
        storage.remove("k")
        assert storage.read("k") is None

    def test_backs_a_cart_store(self, session_factory, clock: FakeClock):
        storage = SQLAlchemyStorage(session_factory, CartRow)
        CartStore(storage, now=clock).add("P1", 2, [SIZE_M], price(10))

        reopened = CartStore(storage, now=clock)
        [item] = reopened.items()
        assert item.quantity == 2
        assert item.attributes == (SIZE_M,)

    def test_database_errors_become_storage_errors(self):
        engine = create_engine("sqlite://")
        storage = SQLAlchemyStorage(sessionmaker(engine), CartRow)
        with pytest.raises(StorageError):
            storage.read("k")
