# recohub/domain/services/fallback_svc.py

from __future__ import annotations
from typing import Iterable, List, Optional, Set
import logging
import math

from recohub.domain.exceptions import InvalidRequestError
from recohub.domain.models.product import Product
from recohub.domain.models.recommendation import RecommendationResult
from recohub.domain.repositories.catalog_repo import CatalogRepo
from recohub.domain.services.constants import (
    ALL_STRATEGIES,
    CATEGORY_SCORE_MAX,
    CATEGORY_SCORE_MIN,
    DEFAULT_LIMIT,
    FALLBACK_REASON,
    FALLBACK_SCORE_STEP,
    POPULARITY_SCORE_MAX,
    POPULARITY_SCORE_MIN,
    PROVENANCE_CATEGORY,
    PROVENANCE_POPULARITY,
    SOURCE_CATEGORY,
    SOURCE_HYBRID,
    SOURCE_POPULARITY,
    STRATEGY_CATEGORY,
    STRATEGY_HYBRID,
    STRATEGY_POPULARITY,
)
from recohub.domain.services.popularity import PopularityRanker, ShufflePopularityRanker

logger = logging.getLogger(__name__)


def resolve_strategy(name: Optional[str], default: str = STRATEGY_HYBRID) -> str:
    """Map a configured/overridden strategy name to a known one; unknown names become hybrid."""
    if not name:
        return default if default in ALL_STRATEGIES else STRATEGY_HYBRID
    normalized = name.strip().lower()
    if normalized in ALL_STRATEGIES:
        return normalized
    logger.warning("Unknown fallback strategy=%s, using %s", name, STRATEGY_HYBRID)
    return STRATEGY_HYBRID


def fallback_score(kind: str, position: int) -> float:
    """
    Descending score inside a fixed band, kept below the learned path:
      category   70 → 60
      popularity 60 → 50
    """
    if kind == SOURCE_CATEGORY:
        low, high = CATEGORY_SCORE_MIN, CATEGORY_SCORE_MAX
    else:
        low, high = POPULARITY_SCORE_MIN, POPULARITY_SCORE_MAX
    return max(low, min(high, high - position * FALLBACK_SCORE_STEP))


def _category_explanation(category: str) -> str:
    return f"Recommended because it is in the {category} category"


def _popularity_explanation() -> str:
    return "Recommended because it is a popular product"


class RuleBasedFallback:
    """
    Deterministic recommender used when the similarity index is unusable.
    Catalog errors propagate: the orchestrator decides what degradation means.
    """

    def __init__(self, catalog: CatalogRepo, ranker: Optional[PopularityRanker] = None):
        self.catalog = catalog
        self.ranker = ranker or ShufflePopularityRanker()

    async def get_recommendations(
        self,
        context: Optional[Product],
        limit: int = DEFAULT_LIMIT,
        strategy: str = STRATEGY_HYBRID,
        *,
        exclude_ids: Iterable[int] = (),
    ) -> List[RecommendationResult]:
        """
        Strategies:
          - category_only:   same category as `context`
          - popularity_only: catalog-wide popularity sample
          - hybrid:          ceil(limit/2) from category, remainder from popularity
        `context` itself (when persisted) and `exclude_ids` never appear in the output.
        """
        if limit < 1:
            raise InvalidRequestError(f"limit must be >= 1, got {limit}")

        excluded: Set[int] = set(exclude_ids)
        if context is not None and context.id is not None:
            excluded.add(context.id)

        strategy = resolve_strategy(strategy)
        if strategy == STRATEGY_CATEGORY:
            recs = await self._by_category(context, limit, excluded, label=SOURCE_CATEGORY)
            label = SOURCE_CATEGORY
        elif strategy == STRATEGY_POPULARITY:
            recs = await self._by_popularity(limit, excluded, label=SOURCE_POPULARITY)
            label = SOURCE_POPULARITY
        else:
            recs = await self._hybrid(context, limit, excluded)
            label = SOURCE_HYBRID

        logger.info(
            "Rule-based fallback activated strategy=%s products_count=%s reason=%s",
            label, len(recs), FALLBACK_REASON,
        )
        return recs

    async def _by_category(
        self, context: Optional[Product], limit: int, excluded: Set[int], *, label: str
    ) -> List[RecommendationResult]:
        if context is None:
            return []

        # over-fetch so that excluded rows do not starve the page
        products = await self.catalog.find_by_category(context.category, limit + 1 + len(excluded))

        recs: List[RecommendationResult] = []
        for product in products:
            if product.id in excluded:
                continue
            if len(recs) >= limit:
                break
            recs.append(
                RecommendationResult.for_product(
                    product,
                    score=fallback_score(SOURCE_CATEGORY, len(recs)),
                    rank=len(recs) + 1,
                    explanation=_category_explanation(context.category),
                    provenance=PROVENANCE_CATEGORY,
                    strategy=label,
                )
            )
        return recs

    async def _by_popularity(self, limit: int, excluded: Set[int], *, label: str) -> List[RecommendationResult]:
        products = await self.catalog.find_all(limit=limit + len(excluded))
        ranked = [p for p in self.ranker.rank(products) if p.id not in excluded][:limit]

        return [
            RecommendationResult.for_product(
                product,
                score=fallback_score(SOURCE_POPULARITY, i),
                rank=i + 1,
                explanation=_popularity_explanation(),
                provenance=PROVENANCE_POPULARITY,
                strategy=label,
            )
            for i, product in enumerate(ranked)
        ]

    async def _hybrid(self, context: Optional[Product], limit: int, excluded: Set[int]) -> List[RecommendationResult]:
        category_count = math.ceil(limit * 0.5)
        category_recs = await self._by_category(context, category_count, excluded, label=SOURCE_HYBRID)

        popularity_count = limit - len(category_recs)
        popularity_recs: List[RecommendationResult] = []
        if popularity_count > 0:
            taken = excluded | {r.product_id for r in category_recs}
            popularity_recs = await self._by_popularity(popularity_count, taken, label=SOURCE_HYBRID)

        if len(category_recs) < category_count:
            logger.info(
                "Fallback category insufficient, using popularity category_products=%s popularity_products=%s",
                len(category_recs), len(popularity_recs),
            )

        return [r.reranked(i) for i, r in enumerate(category_recs + popularity_recs, start=1)]
