# recohub/domain/services/recommendation_svc.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple
import asyncio
import logging
import time

from recohub.core.config import Settings, get_settings
from recohub.domain.exceptions import InvalidRequestError
from recohub.domain.models.product import Product
from recohub.domain.models.recommendation import RecommendationResult
from recohub.domain.repositories.catalog_repo import CatalogRepo, load_snapshot
from recohub.domain.services.constants import DEFAULT_LIMIT, STRATEGY_POPULARITY
from recohub.domain.services.fallback_svc import RuleBasedFallback, resolve_strategy
from recohub.domain.services.popularity import PopularityRanker
from recohub.domain.services.similarity_index import SimilarityIndex

logger = logging.getLogger(__name__)

OK = "ok"               # learned path answered on its own
DEGRADED = "degraded"   # fallback answered, fully or as a top-up
FAILED = "failed"       # stage could not answer; caller must recover

# stages where the similarity index was actually involved
_LEARNED_PATHS = {"knn", "knn+fallback"}


@dataclass(frozen=True)
class StageOutcome:
    status: str
    results: Tuple[RecommendationResult, ...] = ()
    path: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, results: Iterable[RecommendationResult], path: str) -> "StageOutcome":
        return cls(OK, tuple(results), path)

    @classmethod
    def degraded(cls, results: Iterable[RecommendationResult], path: str) -> "StageOutcome":
        return cls(DEGRADED, tuple(results), path)

    @classmethod
    def failed(cls, error: BaseException, path: str) -> "StageOutcome":
        return cls(FAILED, (), path, error)


def merge_results(
    primary: Sequence[RecommendationResult],
    secondary: Sequence[RecommendationResult],
    limit: int,
    exclude_id: Optional[int] = None,
) -> List[RecommendationResult]:
    """Primary first, then secondary; unique by product_id, ranks renumbered 1..n."""
    seen = {exclude_id} if exclude_id is not None else set()
    merged: List[RecommendationResult] = []
    for rec in list(primary) + list(secondary):
        if rec.product_id in seen:
            continue
        seen.add(rec.product_id)
        merged.append(rec.reranked(len(merged) + 1))
        if len(merged) >= limit:
            break
    return merged


class RecommendationService:
    """
    Single entry point for product recommendations.

    Decision order for generate():
      1) Load (or reuse) the catalog snapshot.
      2) Unknown target → cold start: popularity fallback.
      3) Forced, or catalog under the ML threshold → rule-based fallback.
      4) Ensure the similarity index is trained on the snapshot.
      5) Query the index.
      6) Short of `limit` → top up from the fallback, deduplicated.
    Any failure along the way turns into a best-effort fallback for the
    re-fetched target, and an empty list if that fails too.

    Not safe for concurrent mutation across threads: one service per worker.
    Within an event loop, snapshot loading is serialized by a lock (one per loop).
    """

    def __init__(
        self,
        catalog: CatalogRepo,
        *,
        settings: Optional[Settings] = None,
        index: Optional[SimilarityIndex] = None,
        fallback: Optional[RuleBasedFallback] = None,
        ranker: Optional[PopularityRanker] = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.index = index or SimilarityIndex()
        self.fallback = fallback or RuleBasedFallback(catalog, ranker)
        self._snapshot: Optional[List[Product]] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    # ----- Cache control ----------------------------------------------------

    @property
    def is_trained(self) -> bool:
        return self.index.is_trained

    @property
    def cached_snapshot(self) -> Optional[List[Product]]:
        return self._snapshot

    def clear_cache(self) -> None:
        """Drop the catalog snapshot and trained index; next call reloads and retrains."""
        self._snapshot = None
        self.index.clear()
        logger.debug("Recommendation cache cleared")

    # ----- Public API -------------------------------------------------------

    async def generate(
        self,
        target_id: int,
        limit: int = DEFAULT_LIMIT,
        force_insufficient_data: bool = False,
        fallback_strategy: Optional[str] = None,
    ) -> List[RecommendationResult]:
        outcome = await self.generate_outcome(target_id, limit, force_insufficient_data, fallback_strategy)
        return list(outcome.results)

    async def generate_outcome(
        self,
        target_id: int,
        limit: int = DEFAULT_LIMIT,
        force_insufficient_data: bool = False,
        fallback_strategy: Optional[str] = None,
    ) -> StageOutcome:
        """Same as generate() but keeps the status and path that produced the results."""
        if limit < 1:
            raise InvalidRequestError(f"limit must be >= 1, got {limit}")

        strategy = resolve_strategy(fallback_strategy or self.settings.RECOMMENDATION_FALLBACK_STRATEGY)
        start_time = time.perf_counter()

        try:
            outcome = await self._run(target_id, limit, force_insufficient_data, strategy)
        except Exception as e:
            # snapshot load / target lookup failures land here
            outcome = StageOutcome.failed(e, "load")

        if outcome.status == FAILED:
            outcome = await self._recover(target_id, limit, strategy, outcome)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        if elapsed_ms > self.settings.RECOMMENDATION_SLOW_MS:
            logger.warning(
                "Slow recommendation target_product_id=%s path=%s elapsed_ms=%.1f",
                target_id, outcome.path, elapsed_ms,
            )
        logger.info(
            "Recommendations generated target_product_id=%s status=%s path=%s count=%s",
            target_id, outcome.status, outcome.path, len(outcome.results),
        )
        return outcome

    # ----- Stages -----------------------------------------------------------

    async def _run(self, target_id: int, limit: int, force: bool, strategy: str) -> StageOutcome:
        products = await self._ensure_snapshot()

        target = await self.catalog.find_by_id(target_id)
        if target is None:
            return await self._cold_start(target_id, limit)

        min_products = self.settings.RECOMMENDATION_MIN_PRODUCTS_FOR_ML
        if force or len(products) < min_products:
            logger.info(
                "Insufficient data for ML target_product_id=%s products=%s min_products=%s forced=%s",
                target_id, len(products), min_products, force,
            )
            return await self._fallback_stage(target, limit, strategy)

        learned = self._learned_stage(target, products, limit)
        if learned.status == FAILED or len(learned.results) >= limit:
            return learned

        return await self._top_up_stage(target, learned, limit, strategy)

    def _snapshot_lock(self) -> asyncio.Lock:
        # an asyncio.Lock is bound to one loop; a service reused under a new loop gets a fresh one
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _ensure_snapshot(self) -> List[Product]:
        async with self._snapshot_lock():
            if self._snapshot is None:
                self._snapshot = await load_snapshot(self.catalog, self.settings.catalog_page_size)
                logger.info("Catalog snapshot loaded products=%s", len(self._snapshot))
            return self._snapshot

    async def _cold_start(self, target_id: int, limit: int) -> StageOutcome:
        logger.warning("Product not found, cold start target_product_id=%s", target_id)
        recs = await self.fallback.get_recommendations(None, limit, STRATEGY_POPULARITY)
        return StageOutcome.degraded(recs, "cold_start")

    async def _fallback_stage(self, target: Product, limit: int, strategy: str) -> StageOutcome:
        try:
            recs = await self.fallback.get_recommendations(target, limit, strategy)
        except Exception as e:
            return StageOutcome.failed(e, "fallback")
        return StageOutcome.degraded(merge_results(recs, (), limit, target.id), "fallback")

    def _learned_stage(self, target: Product, products: Sequence[Product], limit: int) -> StageOutcome:
        try:
            snapshot = self.index.ensure_trained(products, self.settings.RECOMMENDATION_KNN_NEIGHBORS)
            recs = snapshot.recommend(target, limit)
        except Exception as e:
            return StageOutcome.failed(e, "knn")
        return StageOutcome.ok(recs, "knn")

    async def _top_up_stage(self, target: Product, learned: StageOutcome, limit: int, strategy: str) -> StageOutcome:
        shortfall = limit - len(learned.results)
        logger.info(
            "Similarity index short target_product_id=%s learned=%s shortfall=%s",
            target.id, len(learned.results), shortfall,
        )
        try:
            extra = await self.fallback.get_recommendations(
                target,
                shortfall,
                strategy,
                exclude_ids={r.product_id for r in learned.results},
            )
        except Exception as e:
            return StageOutcome.failed(e, "knn+fallback")
        return StageOutcome.degraded(merge_results(learned.results, extra, limit, target.id), "knn+fallback")

    async def _recover(self, target_id: int, limit: int, strategy: str, failed: StageOutcome) -> StageOutcome:
        reason = "ML failed" if failed.path in _LEARNED_PATHS else "Recommendation stage failed"
        logger.error(
            "%s, using fallback target_product_id=%s path=%s error=%s",
            reason, target_id, failed.path, failed.error,
            exc_info=failed.error,
        )
        try:
            target = await self.catalog.find_by_id(target_id)
            if target is None:
                return StageOutcome.degraded((), "recovery")
            recs = await self.fallback.get_recommendations(target, limit, strategy)
        except Exception as e:
            logger.error("Fallback failed, returning empty target_product_id=%s error=%s", target_id, e, exc_info=e)
            return StageOutcome.failed(e, "recovery")
        return StageOutcome.degraded(merge_results(recs, (), limit, target.id), "recovery")
