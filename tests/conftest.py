"""Shared fixtures: the bundled catalog, a tiny hand-built catalog and a fake clock."""

import os

import pytest

from catalog import Catalog, load_catalog

DATA_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "products.json")


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_product(id, name, **overrides):
    record = {
        "id": id,
        "name": name,
        "slug": id,
        "price": 10000,
        "images": [f"/images/{id}.jpg"],
        "description": "",
        "detailed_description": "",
        "collection": "kaleidoscope",
        "tags": [],
        "specifications": {},
        "in_stock": True,
        "stock_quantity": 5,
    }
    record.update(overrides)
    return record


@pytest.fixture
def catalog():
    return load_catalog(DATA_PATH)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def small_catalog():
    return Catalog.from_records([
        make_product("a-1", "Nightingale Brooch", description="Enamel bird brooch"),
        make_product("a-2", "Gold Hoop Earrings", tags=["hoop", "gold"]),
    ])
