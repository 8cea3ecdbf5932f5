from __future__ import annotations
from typing import Any, Iterable, List, Mapping, Optional, Union

from recohub.domain.models.product import Product
from recohub.domain.repositories.catalog_repo import CatalogRepo


class InMemoryCatalogRepo(CatalogRepo):
    """
    Catalog read repository over a fixed list of products (or raw rows).
    Same ordering contract as the Mongo repo: by name, then id.
    """

    def __init__(self, products: Iterable[Union[Product, Mapping[str, Any]]] = ()):
        items = [p if isinstance(p, Product) else Product.from_row(p) for p in products]
        self._products: List[Product] = sorted(items, key=lambda p: (p.name, p.id or 0))

    async def find_by_id(self, product_id: int) -> Optional[Product]:
        return next((p for p in self._products if p.id == product_id), None)

    async def find_by_slug(self, slug: str) -> Optional[Product]:
        return next((p for p in self._products if p.slug == slug), None)

    async def find_all(self, limit: int = 50, offset: int = 0) -> List[Product]:
        return self._products[offset:offset + limit]

    async def find_by_category(self, category: str, limit: int = 50) -> List[Product]:
        return await self.find_by_category_paginated(category, limit, 0)

    async def find_by_category_paginated(self, category: str, limit: int, offset: int) -> List[Product]:
        matches = [p for p in self._products if p.category == category]
        return matches[offset:offset + limit]

    async def count_by_category(self, category: str) -> int:
        return sum(1 for p in self._products if p.category == category)

    async def find_categories(self) -> List[str]:
        return sorted({p.category for p in self._products})

    async def count(self) -> int:
        return len(self._products)
