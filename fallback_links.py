"""
fallback_links.py — deterministic retailer search links.

Used whenever model-driven product discovery yields nothing usable, so every
clothing item always carries at least these four leads. The URL templates
are part of the public contract: keep them stable.
"""
from __future__ import annotations

from urllib.parse import quote

from outfit import CHECK_PRICE, Product

# (store, search-url template); "{q}" is the percent-encoded phrase
RETAILERS: tuple[tuple[str, str], ...] = (
    ("Amazon",    "https://www.amazon.com/s?k={q}"),
    ("Nordstrom", "https://www.nordstrom.com/sr?keyword={q}"),
    ("ASOS",      "https://www.asos.com/us/search/?q={q}"),
    ("Zara",      "https://www.zara.com/us/en/search?searchTerm={q}"),
)

# Same unreserved set as JavaScript's encodeURIComponent (spaces → %20)
_SAFE_CHARS = "-_.!~*'()"


def encode_phrase(search_terms: str) -> str:
    if not isinstance(search_terms, str):
        return ""
    return quote(search_terms, safe=_SAFE_CHARS)


def build_fallback(search_terms: str) -> list[Product]:
    """Return one search-results Product per known retailer. Never raises."""
    q = encode_phrase(search_terms)
    return [
        Product(
            title=f"{store} Search",
            store=store,
            price=CHECK_PRICE,
            url=template.format(q=q),
        )
        for store, template in RETAILERS
    ]
