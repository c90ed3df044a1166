"""
image_analyzer.py — stage 1: break an outfit photo into clothing items.

One vision call per image, no retry. Anything that goes wrong (transport,
unparseable text, schema violation) becomes a single AnalysisError so the
caller has exactly one failure type to handle for this stage.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from outfit import AnalysisResult, ClothingItem
from providers.base import ANALYSIS_SCHEMA, REQUIRED_ITEM_FIELDS, ModelProvider, TransportError
from response_extractor import ExtractionError, extract_json

logger = logging.getLogger(__name__)

# Image formats the vision model accepts inline
SUPPORTED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
})

_MIME_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}


class AnalysisError(Exception):
    """
    Vision stage failed. The message is safe to show to the user.
    retryable is False when re-running with the same image cannot succeed
    (empty or unsupported upload).
    """

    def __init__(
        self,
        message: str = "Failed to analyze image. Please try again.",
        retryable: bool = True,
    ):
        super().__init__(message)
        self.message   = message
        self.retryable = retryable


class SchemaError(ValueError):
    """Parsed analysis JSON is missing required fields."""


def detect_mime_type(image_bytes: bytes) -> Optional[str]:
    """Sniff the image format from magic bytes. None when unrecognised."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[4:8] == b"ftyp":
        brand = image_bytes[8:12]
        if brand in (b"heic", b"heix", b"heim", b"heis"):
            return "image/heic"
        if brand in (b"mif1", b"msf1", b"heif"):
            return "image/heif"
    return None


def normalize_mime_type(media_type: Optional[str], image_bytes: bytes) -> str:
    """Return a supported MIME type for the payload or raise AnalysisError."""
    if media_type:
        mime = media_type.split(";")[0].strip().lower()
        mime = _MIME_ALIASES.get(mime, mime)
    else:
        mime = detect_mime_type(image_bytes) or ""
    if mime not in SUPPORTED_MIME_TYPES:
        raise AnalysisError(
            f"Unsupported image type: {media_type or 'unknown'}. "
            "Please upload a PNG, JPEG, WebP or HEIC photo.",
            retryable=False,
        )
    return mime


def parse_analysis(data: Any) -> AnalysisResult:
    """Validate parsed JSON against the analysis shape. Raises SchemaError."""
    if not isinstance(data, dict):
        raise SchemaError(f"Expected a JSON object, got {type(data).__name__}")

    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        raise SchemaError("'items' must be a list")

    items = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise SchemaError(f"items[{idx}] is not an object")
        missing = [f for f in REQUIRED_ITEM_FIELDS if not isinstance(raw.get(f), str)]
        if missing:
            raise SchemaError(f"items[{idx}] missing or non-string fields: {', '.join(missing)}")
        items.append(ClothingItem.from_dict(raw))

    overall = data.get("overallStyle", "")
    if overall is None:
        overall = ""
    if not isinstance(overall, str):
        raise SchemaError("'overallStyle' must be a string")

    return AnalysisResult(items=tuple(items), overall_style=overall)


class VisionAnalyzer:

    def __init__(self, provider: Optional[ModelProvider] = None):
        self._provider = provider

    @property
    def provider(self) -> ModelProvider:
        if self._provider is None:
            from providers.manager import get_provider
            self._provider = get_provider()
        return self._provider

    async def analyze(self, image_bytes: bytes, media_type: Optional[str] = None) -> AnalysisResult:
        if not image_bytes:
            raise AnalysisError("No image received. Please upload a photo.", retryable=False)
        mime = normalize_mime_type(media_type, image_bytes)

        try:
            raw = await self.provider.vision_analyze(image_bytes, mime, ANALYSIS_SCHEMA)
        except TransportError as exc:
            logger.error("Vision request failed: %s", exc)
            raise AnalysisError() from exc

        if not raw or not raw.strip():
            logger.error("Vision model returned no text")
            raise AnalysisError("The image could not be analyzed. Please try again.")

        try:
            result = parse_analysis(extract_json(raw))
        except (ExtractionError, SchemaError) as exc:
            logger.error("Vision response rejected: %s — %s", exc, raw[:300])
            raise AnalysisError() from exc

        logger.info(
            "Vision analysis: %d item(s), overall style %r",
            len(result.items), result.overall_style,
        )
        return result
