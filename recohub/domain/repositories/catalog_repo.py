# recohub/domain/repositories/catalog_repo.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

from recohub.domain.models.product import Product


class CatalogRepo(ABC):
    """
    Read contract over the product catalog.
    The recommender only reads through this; writes belong to the catalog service.
    """

    @abstractmethod
    async def find_by_id(self, product_id: int) -> Optional[Product]: ...

    @abstractmethod
    async def find_by_slug(self, slug: str) -> Optional[Product]: ...

    @abstractmethod
    async def find_all(self, limit: int = 50, offset: int = 0) -> List[Product]: ...

    @abstractmethod
    async def find_by_category(self, category: str, limit: int = 50) -> List[Product]: ...

    @abstractmethod
    async def find_by_category_paginated(self, category: str, limit: int, offset: int) -> List[Product]: ...

    @abstractmethod
    async def count_by_category(self, category: str) -> int: ...

    @abstractmethod
    async def find_categories(self) -> List[str]: ...

    @abstractmethod
    async def count(self) -> int: ...


async def load_snapshot(repo: CatalogRepo, page_size: int = 500) -> List[Product]:
    """
    Page through find_all up to the catalog count; returns the whole catalog ordered by name.
    Paging is driven by count() rather than page length: repositories may drop
    malformed rows, so a short page does not mean the catalog is exhausted.
    """
    total = await repo.count()
    products: List[Product] = []
    for offset in range(0, total, page_size):
        products.extend(await repo.find_all(limit=page_size, offset=offset))
    return products
