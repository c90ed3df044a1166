"""
Shared prompts, response schema and base class for model providers.

A provider exposes the two capabilities the pipeline needs:
  vision_analyze  — image + schema → text (expected to be JSON)
  grounded_search — prompt → free text (may wrap JSON in prose/markdown)
Both return raw text; parsing and validation happen in the callers.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from outfit import ClothingItem


class TransportError(RuntimeError):
    """A capability call could not be completed (network, auth, quota, SDK)."""


# ── Prompts (shared across providers) ─────────────────────────────────────────

VISION_PROMPT = """Analyze this image and identify all clothing items visible. For each item, provide:
1. A detailed description of the item (style, color, material, brand if visible)
2. Estimated price range
3. Search terms that would help find this exact item online

If no clothing is visible, return an empty "items" list.
Return the response in JSON format."""

_ITEM_FIELDS = ("name", "description", "color", "style", "estimatedPrice", "searchTerms")

# Declared to the vision capability so it emits conformant JSON directly.
ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "items": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {f: {"type": "STRING"} for f in _ITEM_FIELDS},
                "required": list(_ITEM_FIELDS),
            },
        },
        "overallStyle": {"type": "STRING"},
    },
    "required": ["items", "overallStyle"],
}

REQUIRED_ITEM_FIELDS: tuple[str, ...] = _ITEM_FIELDS

_DISCOVERY_TEMPLATE = """For the clothing item described as "{description}" (Search terms: "{search_terms}"), identify 3-4 major retailers that likely carry this style (e.g., Nordstrom, Amazon, ASOS, Zara, H&M, Revolve, Shopbop, etc.).

For each retailer, construct a VALID search URL that searches for these specific keywords on their website. Do NOT try to find a specific product page URL (like /product/123), as these often break. Instead, create a search results page URL (like /search?q=keywords).

Return a JSON object with a "products" array.

Format:
```json
{{
  "products": [
    {{
      "title": "Search for [Item Name] at [Store]",
      "store": "[Store Name]",
      "price": "Check Price",
      "url": "https://www.retailer.com/search?q=encoded+keywords",
      "description": "Click to see available options at [Store Name]"
    }}
  ]
}}
```"""


def build_discovery_prompt(item: "ClothingItem") -> str:
    """Grounded-search prompt for one clothing item."""
    return _DISCOVERY_TEMPLATE.format(
        description=item.description,
        search_terms=item.search_terms,
    )


# ── Abstract base ──────────────────────────────────────────────────────────────

class ModelProvider(ABC):
    """Base class all model providers must implement."""

    name: str           # e.g. "google"
    model_id: str       # vision model id, e.g. "gemini-2.5-flash"

    @abstractmethod
    async def vision_analyze(
        self,
        image_bytes: bytes,
        mime_type: str,
        schema: dict[str, Any],
    ) -> str:
        """Run vision inference. Returns raw response text ("" when the model gave none)."""
        ...

    @abstractmethod
    async def grounded_search(self, prompt: str) -> str:
        """Run a search-grounded text generation. Returns raw response text."""
        ...

    @property
    def full_name(self) -> str:
        return f"{self.name}/{self.model_id}"
