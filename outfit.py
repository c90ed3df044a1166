"""
outfit.py — canonical home of the analysis data model.

Product, ClothingItem and AnalysisResult are frozen: once the pipeline
returns a result nothing downstream can mutate it. Wire form (to_dict /
from_dict) uses the camelCase keys the vision model is asked to emit.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional
from urllib.parse import urlsplit

CHECK_PRICE = "Check Price"


def is_absolute_url(url: Any) -> bool:
    """True for a syntactically valid absolute http(s) URL. No liveness check."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


@dataclass(frozen=True)
class Product:
    """One purchasable lead — usually a retailer search-results page."""
    title: str
    store: str
    price: str                  # display string, "Check Price" is valid
    url: str
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "title": self.title,
            "store": self.store,
            "price": self.price,
            "url":   self.url,
        }
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass(frozen=True)
class ClothingItem:
    name: str
    description: str
    color: str
    style: str
    estimated_price: str
    search_terms: str
    products: tuple[Product, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClothingItem":
        return cls(
            name            = data["name"],
            description     = data["description"],
            color           = data["color"],
            style           = data["style"],
            estimated_price = data["estimatedPrice"],
            search_terms    = data["searchTerms"],
        )

    def with_products(self, products: Iterable[Product]) -> "ClothingItem":
        return replace(self, products=tuple(products))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name":           self.name,
            "description":    self.description,
            "color":          self.color,
            "style":          self.style,
            "estimatedPrice": self.estimated_price,
            "searchTerms":    self.search_terms,
            "products":       [p.to_dict() for p in self.products],
        }


@dataclass(frozen=True)
class AnalysisResult:
    items: tuple[ClothingItem, ...]
    overall_style: str

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict[str, Any]:
        return {
            "items":        [i.to_dict() for i in self.items],
            "overallStyle": self.overall_style,
        }
