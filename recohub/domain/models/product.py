from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from pydantic import BaseModel, Field, field_validator

from recohub.domain.exceptions import IdentityAlreadyAssignedError
from recohub.domain.models.money import Money

_ROW_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_created_at(value: Any) -> datetime:
    """Accept datetimes, ISO strings or 'YYYY-MM-DD HH:MM:SS' catalog rows."""
    if value is None or value == "":
        return _utcnow()
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    try:
        return datetime.strptime(text, _ROW_DATETIME_FORMAT)
    except ValueError:
        return datetime.fromisoformat(text)


class Product(BaseModel):
    """
    Catalog item as seen by the recommender.
    Read-only: the core never mutates or persists products. `id` is None for
    transient instances and, once assigned, never changes.
    """
    id: Optional[int] = None
    name: str = Field(min_length=1)
    description: str = ""
    price: Money
    category: str = Field(min_length=1)
    image_url: str = ""
    slug: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}  # immuable = safe

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Any) -> datetime:
        # ValueError here surfaces as a ValidationError naming the field
        return _parse_created_at(v)

    @field_validator("name", "category")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    def with_id(self, product_id: int) -> "Product":
        """Return a copy carrying its persisted identity; identity is assigned exactly once."""
        if self.id is not None:
            raise IdentityAlreadyAssignedError(f"Product already has id={self.id}")
        return self.model_copy(update={"id": int(product_id)})

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Product":
        """Build a Product from a catalog store row (price stored as a decimal)."""
        raw_id = row.get("id")
        return cls(
            id=int(raw_id) if raw_id is not None else None,
            name=row["name"],
            description=row.get("description") or "",
            price=Money.from_decimal(row["price"]),
            category=row["category"],
            image_url=row.get("image_url") or "",
            slug=row.get("slug"),
            created_at=row.get("created_at"),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price.decimal),
            "price_formatted": self.price.formatted,
            "category": self.category,
            "image_url": self.image_url,
            "slug": self.slug,
            "created_at": self.created_at.strftime(_ROW_DATETIME_FORMAT),
        }
