# recohub/deps.py
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from recohub.core.config import Settings, get_settings
from recohub.db import mongo
from recohub.domain.repositories.mongo_catalog_repo import MongoCatalogRepo
from recohub.domain.services.popularity import PopularityRanker
from recohub.domain.services.recommendation_svc import RecommendationService


# Catalog repository over the configured Mongo database (defaults to the connected one)
def catalog_repo(db: Optional[AsyncIOMotorDatabase] = None, settings: Optional[Settings] = None) -> MongoCatalogRepo:
    settings = settings or get_settings()
    return MongoCatalogRepo(db if db is not None else mongo.get_db(), settings.MONGO_PRODUCTS_COLLECTION)


# One service per worker: it owns a snapshot cache and a trained index
def build_recommendation_service(
    db: Optional[AsyncIOMotorDatabase] = None,
    *,
    settings: Optional[Settings] = None,
    ranker: Optional[PopularityRanker] = None,
) -> RecommendationService:
    settings = settings or get_settings()
    return RecommendationService(catalog_repo(db, settings), settings=settings, ranker=ranker)


@asynccontextmanager
async def recommendation_session(
    settings: Optional[Settings] = None,
    *,
    ranker: Optional[PopularityRanker] = None,
) -> AsyncIterator[RecommendationService]:
    """
    Worker lifecycle: connect to the catalog, hand out a service, disconnect on exit.

        async with recommendation_session() as service:
            results = await service.generate(product_id)
    """
    settings = settings or get_settings()

    # --- Startup ---
    db = await mongo.connect(settings)
    if db is None:
        raise RuntimeError("Mongo catalog unavailable: set MONGO_URI")

    try:
        yield build_recommendation_service(db, settings=settings, ranker=ranker)
    finally:
        # --- Shutdown ---
        await mongo.disconnect()
