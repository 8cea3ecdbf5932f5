from typing import Optional
from pydantic import BaseModel, Field

from recohub.domain.models.product import Product


class RecommendationResult(BaseModel):
    product_id: int
    product_name: str
    category: str
    price: str                      # formatted for display, e.g. "1.234,56"
    score: float = Field(ge=0, le=100)
    rank: int = Field(ge=1)
    explanation: str
    provenance: Optional[str] = None
    strategy: Optional[str] = None

    model_config = {"frozen": True}  # immuable = safe

    @classmethod
    def for_product(
        cls,
        product: Product,
        *,
        score: float,
        rank: int,
        explanation: str,
        provenance: Optional[str] = None,
        strategy: Optional[str] = None,
    ) -> "RecommendationResult":
        return cls(
            product_id=product.id,
            product_name=product.name,
            category=product.category,
            price=product.price.formatted,
            score=score,
            rank=rank,
            explanation=explanation,
            provenance=provenance,
            strategy=strategy,
        )

    def reranked(self, rank: int) -> "RecommendationResult":
        """Copy with a new position; merged lists are new values, never mutated."""
        return self.model_copy(update={"rank": rank})

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.product_name,
            "category": self.category,
            "price": self.price,
            "score": self.score,
            "rank": self.rank,
            "explanation": self.explanation,
            "provenance": self.provenance,
            "strategy": self.strategy,
        }
