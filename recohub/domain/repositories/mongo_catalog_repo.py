# recohub/domain/repositories/mongo_catalog_repo.py

from __future__ import annotations
from typing import Any, List, Mapping, Optional
import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from recohub.domain.models.product import Product
from recohub.domain.repositories.catalog_repo import CatalogRepo

logger = logging.getLogger(__name__)

_PROJECTION = {
    "_id": 0,
    "id": 1,
    "name": 1,
    "description": 1,
    "price": 1,
    "category": 1,
    "image_url": 1,
    "slug": 1,
    "created_at": 1,
}


def _to_product(doc: Mapping[str, Any]) -> Optional[Product]:
    """Map a document to a Product; a malformed document is logged and skipped."""
    try:
        return Product.from_row(doc)
    except (ValidationError, KeyError, ValueError, ArithmeticError) as e:
        logger.warning("Skipping malformed catalog document id=%s error=%s", doc.get("id"), e)
        return None


class MongoCatalogRepo(CatalogRepo):
    """
    Catalog read repository backed by the 'products' collection.
    Documents carry a numeric `id` (the catalog identity), not Mongo's `_id`:
      { id, name, description, price, category, image_url, slug, created_at }
    One bad document never fails a listing: it is dropped from the page, so
    pages can come back shorter than `limit`.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    async def find_by_id(self, product_id: int) -> Optional[Product]:
        doc = await self.col.find_one({"id": int(product_id)}, _PROJECTION)
        return _to_product(doc) if doc else None

    async def find_by_slug(self, slug: str) -> Optional[Product]:
        doc = await self.col.find_one({"slug": slug}, _PROJECTION)
        return _to_product(doc) if doc else None

    async def find_all(self, limit: int = 50, offset: int = 0) -> List[Product]:
        cursor = self.col.find({}, _PROJECTION).sort([("name", 1), ("id", 1)]).skip(offset).limit(limit)
        return [p for p in [_to_product(doc) async for doc in cursor] if p is not None]

    async def find_by_category(self, category: str, limit: int = 50) -> List[Product]:
        return await self.find_by_category_paginated(category, limit, 0)

    async def find_by_category_paginated(self, category: str, limit: int, offset: int) -> List[Product]:
        cursor = (
            self.col.find({"category": category}, _PROJECTION)
            .sort([("name", 1), ("id", 1)])
            .skip(offset)
            .limit(limit)
        )
        return [p for p in [_to_product(doc) async for doc in cursor] if p is not None]

    async def count_by_category(self, category: str) -> int:
        return await self.col.count_documents({"category": category})

    async def find_categories(self) -> List[str]:
        return sorted(c for c in await self.col.distinct("category") if c)

    async def count(self) -> int:
        return await self.col.count_documents({})
