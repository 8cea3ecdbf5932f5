# recohub/domain/services/similarity_index.py

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np

from recohub.domain.exceptions import IndexNotReadyError, InvalidRequestError, TrainingInfeasibleError
from recohub.domain.models.product import Product
from recohub.domain.models.recommendation import RecommendationResult
from recohub.domain.services.constants import (
    DEFAULT_KNN_NEIGHBORS,
    MIN_TRAINING_ITEMS,
    PROVENANCE_KNN,
    SIMILARITY_SCORE_MAX,
    SOURCE_KNN,
)

logger = logging.getLogger(__name__)

# ---------- Feature space ----------------------------------------------------

def extract_features(product: Product, categories: Sequence[str]) -> np.ndarray:
    """
    Raw feature vector: one-hot over `categories` followed by the price as a decimal.
    A category absent from `categories` yields an all-zero one-hot block.
    """
    vec = np.zeros(len(categories) + 1, dtype=np.float64)
    for i, cat in enumerate(categories):
        if product.category == cat:
            vec[i] = 1.0
    vec[-1] = product.price.as_float()
    return vec


def fit_ranges(raw: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Per-feature (min, max) across the training rows."""
    return raw.min(axis=0), raw.max(axis=0)


def min_max_scale(raw: np.ndarray, mins: np.ndarray, maxs: np.ndarray) -> np.ndarray:
    """Rescale with frozen ranges; a flat feature (max == min) maps to 0.0."""
    span = maxs - mins
    out = np.zeros_like(raw, dtype=np.float64)
    np.divide(raw - mins, span, out=out, where=span != 0)
    return out


def similarity_score(distance: float) -> float:
    """Bounded similarity in [0, 100]: closer distance, higher score."""
    return float(min(SIMILARITY_SCORE_MAX, max(0.0, SIMILARITY_SCORE_MAX / (1.0 + distance))))


def explain(target: Product, recommended: Product) -> str:
    if target.category == recommended.category:
        return (
            f'Recommended because you viewed "{target.name}", '
            f"which is also in the {target.category} category"
        )
    return (
        f"Recommended because you are interested in {target.category} "
        f"and this product is similar ({recommended.category})"
    )

# ---------- Trained snapshot -------------------------------------------------

@dataclass(frozen=True, eq=False)
class TrainedIndex:
    """
    Immutable result of a training run. Everything needed to answer a query is
    frozen here (category set, ranges, normalized matrix), so one snapshot can be
    shared read-only between concurrent callers.
    """
    products: Tuple[Product, ...]
    categories: Tuple[str, ...]
    mins: np.ndarray
    maxs: np.ndarray
    matrix: np.ndarray
    k: int

    def __len__(self) -> int:
        return len(self.products)

    def query_vector(self, product: Product) -> np.ndarray:
        return min_max_scale(extract_features(product, self.categories), self.mins, self.maxs)

    def distances(self, query_vec: np.ndarray) -> np.ndarray:
        return np.sqrt(((self.matrix - query_vec) ** 2).sum(axis=1))

    def neighbors(self, query: Product) -> List[Tuple[int, float]]:
        """The k closest positions with their distances; ties keep training order."""
        dist = self.distances(self.query_vector(query))
        order = np.argsort(dist, kind="stable")[: self.k]
        return [(int(i), float(dist[i])) for i in order]

    def recommend(self, query: Product, limit: int) -> List[RecommendationResult]:
        if limit < 1:
            raise InvalidRequestError(f"limit must be >= 1, got {limit}")

        results: List[RecommendationResult] = []
        for position, distance in self.neighbors(query):
            if len(results) >= limit:
                break
            candidate = self.products[position]
            if query.id is not None and candidate.id == query.id:
                continue
            results.append(
                RecommendationResult.for_product(
                    candidate,
                    score=similarity_score(distance),
                    rank=len(results) + 1,
                    explanation=explain(query, candidate),
                    provenance=PROVENANCE_KNN,
                    strategy=SOURCE_KNN,
                )
            )
        return results


def train_index(items: Sequence[Product], k: int = DEFAULT_KNN_NEIGHBORS) -> TrainedIndex:
    """
    Build a trained snapshot from a catalog:
      1) sorted distinct categories for the one-hot block
      2) raw feature rows (one-hot + price)
      3) per-feature min/max, frozen for query time
      4) min-max scaled matrix
    """
    if k < 1:
        raise InvalidRequestError(f"k must be >= 1, got {k}")
    if len(items) < MIN_TRAINING_ITEMS:
        raise TrainingInfeasibleError(
            f"Need at least {MIN_TRAINING_ITEMS} products to train, got {len(items)}"
        )

    products = tuple(items)
    categories = tuple(sorted({p.category for p in products}))
    raw = np.vstack([extract_features(p, categories) for p in products])
    mins, maxs = fit_ranges(raw)
    matrix = min_max_scale(raw, mins, maxs)
    for arr in (mins, maxs, matrix):
        arr.setflags(write=False)

    return TrainedIndex(
        products=products,
        categories=categories,
        mins=mins,
        maxs=maxs,
        matrix=matrix,
        k=k,
    )

# ---------- Index state ------------------------------------------------------

class SimilarityIndex:
    """
    Holder with two states: Empty, or Trained(snapshot).
    It never trains itself; the caller moves it to Trained via ensure_trained().
    """

    def __init__(self):
        self._snapshot: Optional[TrainedIndex] = None

    @property
    def is_trained(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> Optional[TrainedIndex]:
        return self._snapshot

    def ensure_trained(self, items: Sequence[Product], k: int = DEFAULT_KNN_NEIGHBORS) -> TrainedIndex:
        """Return the current snapshot, training on `items` only when Empty."""
        if self._snapshot is None:
            return self.retrain(items, k)
        return self._snapshot

    def retrain(self, items: Sequence[Product], k: int = DEFAULT_KNN_NEIGHBORS) -> TrainedIndex:
        # full replacement; a failed train leaves the previous state untouched
        snapshot = train_index(items, k)
        self._snapshot = snapshot
        logger.info("Similarity index trained k=%s products=%s categories=%s", k, len(snapshot), len(snapshot.categories))
        return snapshot

    def clear(self) -> None:
        self._snapshot = None

    def recommend(self, query: Product, limit: int) -> List[RecommendationResult]:
        if self._snapshot is None:
            raise IndexNotReadyError("Similarity index must be trained before making recommendations")
        return self._snapshot.recommend(query, limit)
