import asyncio
from typing import List, Sequence

import pytest

from recohub.core.config import Settings
from recohub.domain.models.money import Money
from recohub.domain.models.product import Product
from recohub.domain.repositories.memory_catalog_repo import InMemoryCatalogRepo
from recohub.domain.services.popularity import PopularityRanker


def make_product(product_id, name, category, price, **kw) -> Product:
    return Product(id=product_id, name=name, category=category, price=Money.from_decimal(price), **kw)


def run(coro):
    return asyncio.run(coro)


class IdentityRanker(PopularityRanker):
    """Keeps catalog order so popularity results are predictable."""

    def rank(self, products: Sequence[Product]) -> List[Product]:
        return list(products)


class FailingCatalogRepo(InMemoryCatalogRepo):
    """In-memory catalog whose listed methods raise."""

    def __init__(self, products=(), fail_on=()):
        super().__init__(products)
        self.fail_on = set(fail_on)
        self.calls = []

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise RuntimeError(f"catalog unavailable: {name}")

    async def find_by_id(self, product_id):
        self._check("find_by_id")
        return await super().find_by_id(product_id)

    async def find_all(self, limit=50, offset=0):
        self._check("find_all")
        return await super().find_all(limit, offset)

    async def find_by_category(self, category, limit=50):
        self._check("find_by_category")
        return await super().find_by_category(category, limit)


class FakeCursor:
    def __init__(self, docs):
        self.docs = list(docs)

    def sort(self, keys):
        for field, direction in reversed(keys):
            self.docs.sort(key=lambda d: d.get(field), reverse=direction < 0)
        return self

    def skip(self, n):
        self.docs = self.docs[n:]
        return self

    def limit(self, n):
        self.docs = self.docs[:n]
        return self

    def __aiter__(self):
        self._it = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._it)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """Just enough of Motor's collection API for the catalog repo."""

    def __init__(self, docs):
        self.docs = docs
        self.projections = []

    def _match(self, query):
        return [d for d in self.docs if all(d.get(k) == v for k, v in query.items())]

    async def find_one(self, query, projection=None):
        self.projections.append(projection)
        found = self._match(query)
        return dict(found[0]) if found else None

    def find(self, query, projection=None):
        self.projections.append(projection)
        return FakeCursor(self._match(query))

    async def count_documents(self, query):
        return len(self._match(query))

    async def distinct(self, field):
        return list({d.get(field) for d in self.docs})


CATALOG_DOCS = [
    {"id": 1, "name": "Phone", "price": 2199.0, "category": "Electronics", "slug": "phone", "created_at": "2024-01-01 00:00:00"},
    {"id": 2, "name": "Camera", "price": "499.90", "category": "Electronics", "slug": "camera"},
    {"id": 3, "name": "Novel", "price": 39.9, "category": "Books", "slug": "novel", "description": None},
]


@pytest.fixture
def scenario_products():
    # A..E: four close Electronics items and one cheap Book; names keep id order
    return [
        make_product(1, "Aurora Laptop", "Electronics", "100.00"),
        make_product(2, "Borealis Laptop", "Electronics", "120.00"),
        make_product(3, "Cirrus Laptop", "Electronics", "90.00"),
        make_product(4, "Dynamo Laptop", "Electronics", "110.00"),
        make_product(5, "Epic Novel", "Books", "15.00"),
    ]


@pytest.fixture
def store_products():
    return [
        make_product(1, "Camera", "Electronics", "499.90"),
        make_product(2, "Headphones", "Electronics", "199.00"),
        make_product(3, "Laptop", "Electronics", "3499.00"),
        make_product(4, "Phone", "Electronics", "2199.00"),
        make_product(5, "Novel", "Books", "39.90"),
        make_product(6, "Cookbook", "Books", "79.90"),
        make_product(7, "Puzzle", "Toys", "59.90"),
    ]


@pytest.fixture
def settings():
    return Settings(_env_file=None)
