"""
Provider Manager — builds and caches the model provider from config.

The provider is created lazily on first use so that importing the pipeline
never requires an API key; reset() drops the cache (tests, key rotation).
"""
from __future__ import annotations

import logging
from typing import Optional

import config
from providers.base import ModelProvider, TransportError

logger = logging.getLogger(__name__)

# Module-level cache
_provider: Optional[ModelProvider] = None


def _build_provider() -> ModelProvider:
    if not config.GOOGLE_API_KEY:
        raise TransportError(
            "No model provider available.\n"
            "Set GOOGLE_API_KEY in the environment or .env file."
        )
    from providers.gemini_provider import GeminiProvider
    provider = GeminiProvider(
        config.GOOGLE_API_KEY,
        model=config.VISION_MODEL,
        search_model=config.SEARCH_MODEL,
    )
    logger.info("Loaded provider: %s (search: %s)", provider.full_name, config.SEARCH_MODEL)
    return provider


def get_provider() -> ModelProvider:
    global _provider
    if _provider is None:
        _provider = _build_provider()
    return _provider


def reset() -> None:
    global _provider
    _provider = None
