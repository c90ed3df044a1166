"""
product_search.py — stage 2: find retailer links for one clothing item.

ProductDiscoverer.discover() never raises. Whatever goes wrong for one item
(transport error, timeout, unparseable reply, empty product list) is logged
and replaced by the deterministic fallback links, so one bad lookup can
never abort the batch.

Steps:
  1. Ask the grounded-search model for 3-4 retailer search URLs.
  2. Recover JSON from the free-text reply (prose / markdown tolerated).
  3. Keep entries with a usable absolute URL, fill missing display fields.
  4. Nothing usable → fallback_links.build_fallback(item.search_terms).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import urlsplit

import config
from fallback_links import build_fallback
from outfit import CHECK_PRICE, ClothingItem, Product, is_absolute_url
from providers.base import ModelProvider, build_discovery_prompt
from response_extractor import extract_json

logger = logging.getLogger(__name__)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_product(raw: Any) -> Optional[Product]:
    """
    Build a Product from one model-supplied entry, or None if it has no usable URL.
    Secondary fields are advisory, so they get display defaults instead of
    failing the entry.
    """
    if not isinstance(raw, dict):
        return None
    url = _text(raw.get("url"))
    if not url or not is_absolute_url(url):
        return None
    url = url.strip()

    store = _text(raw.get("store")) or urlsplit(url).netloc.removeprefix("www.")
    title = _text(raw.get("title")) or (f"{store} Search" if store else "View product")
    return Product(
        title=title,
        store=store,
        price=_text(raw.get("price")) or CHECK_PRICE,
        url=url,
        description=_text(raw.get("description")),
    )


def parse_products(raw_text: str, max_products: int) -> list[Product]:
    """
    Extract the products list from a discovery reply.
    Raises ValueError (ExtractionError included) when there is nothing usable.
    """
    data = extract_json(raw_text)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    entries = data.get("products")
    if not isinstance(entries, list) or not entries:
        raise ValueError("'products' missing, not a list, or empty")

    products = [p for p in (coerce_product(e) for e in entries) if p is not None]
    if not products:
        raise ValueError(f"none of {len(entries)} product entries had a valid URL")
    return products[:max_products]


class ProductDiscoverer:

    def __init__(
        self,
        provider: Optional[ModelProvider] = None,
        timeout: Optional[float] = None,
        max_products: Optional[int] = None,
    ):
        self._provider    = provider
        self.timeout      = config.DISCOVERY_TIMEOUT if timeout is None else timeout
        self.max_products = config.MAX_PRODUCTS_PER_ITEM if max_products is None else max_products

    @property
    def provider(self) -> ModelProvider:
        if self._provider is None:
            from providers.manager import get_provider
            self._provider = get_provider()
        return self._provider

    async def discover(self, item: ClothingItem) -> list[Product]:
        """Return retailer links for item — model-curated when possible, fallback otherwise."""
        try:
            raw = await asyncio.wait_for(
                self.provider.grounded_search(build_discovery_prompt(item)),
                timeout=self.timeout,
            )
            products = parse_products(raw, self.max_products)
        except asyncio.TimeoutError:
            logger.warning("Search for '%s' timed out after %.0fs — using fallback links",
                           item.name, self.timeout)
        except Exception as exc:
            logger.warning("Search for '%s' failed: %s — using fallback links", item.name, exc)
        else:
            logger.info("Search for '%s' → %d product(s)", item.name, len(products))
            return products

        return build_fallback(item.search_terms)
