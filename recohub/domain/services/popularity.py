from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
import random

from recohub.domain.models.product import Product


class PopularityRanker(ABC):
    """Orders catalog products from most to least popular."""

    @abstractmethod
    def rank(self, products: Sequence[Product]) -> List[Product]: ...


class ShufflePopularityRanker(PopularityRanker):
    """
    Stand-in ranker: the catalog tracks no views or purchases yet, so
    "popular" is a random sample. Replace with a counter-backed ranker
    once view tracking exists.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def rank(self, products: Sequence[Product]) -> List[Product]:
        ranked = list(products)
        self._rng.shuffle(ranked)
        return ranked
