from __future__ import annotations

import pytest

from cartsync.engine import CartSession, ReconciliationEngine
from cartsync.gateway import MemoryGateway
from cartsync.store import CartStore, MemoryStorage

from helpers import MUG, TEE, FakeClock, sequential_ids


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage, clock: FakeClock) -> CartStore:
    return CartStore(storage, now=clock, id_factory=sequential_ids())


@pytest.fixture
def gateway(clock: FakeClock) -> MemoryGateway:
    return MemoryGateway([TEE, MUG], now=clock)


@pytest.fixture
def session() -> CartSession:
    return CartSession()


@pytest.fixture
def engine(store: CartStore, gateway: MemoryGateway, session: CartSession) -> ReconciliationEngine:
    return ReconciliationEngine(store, gateway, session)
