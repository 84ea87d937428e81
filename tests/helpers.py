"""Shared test data and helpers."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest
from kungfu import Error, Ok

from cartsync import Attribute
from cartsync.gateway import CatalogProduct
from cartsync.store import PriceSnapshot, ProductAttribute, VariantOption

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

TEE = CatalogProduct(
    id="P1",
    name="Tee",
    price=10,
    stock=50,
    attributes=(
        ProductAttribute("Size", (VariantOption("M", 5), VariantOption("L", 5))),
        ProductAttribute("Color", (VariantOption("Red", 10),)),
    ),
)
MUG = CatalogProduct(id="P2", name="Mug", price=4, stock=20)

SIZE_M = Attribute("Size", "M")
SIZE_L = Attribute("Size", "L")
RED = Attribute("Color", "Red")


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.moment = start

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs: float) -> None:
        self.moment += timedelta(**kwargs)


def sequential_ids():
    counter = itertools.count(1)
    return lambda moment: f"local_{next(counter)}"


def unwrap(result):
    match result:
        case Ok(value):
            return value
        case Error(e):
            pytest.fail(f"expected Ok, got Error({e!r})")


def unwrap_error(result):
    match result:
        case Ok(value):
            pytest.fail(f"expected Error, got Ok({value!r})")
        case Error(e):
            return e


def price(unit: float) -> PriceSnapshot:
    return PriceSnapshot(unit_price=unit)
