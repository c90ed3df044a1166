"""
pipeline.py — outfit photo → clothing items → retailer links.

Architecture:
  AnalysisOrchestrator.run()
    ├── VisionAnalyzer.analyze()         (one call, failure aborts the run)
    └── ProductDiscoverer.discover() × N (concurrent, failures absorbed)

States:
  IDLE → ANALYZING → EMPTY ─────────→ DONE
                   → DISCOVERING ───→ DONE
         ANALYZING → FAILED

Items keep the order the vision model returned them in — each discovery
result is written back to its item's own index, whatever order they finish.
"""
from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from fallback_links import build_fallback
from image_analyzer import AnalysisError, VisionAnalyzer
from outfit import AnalysisResult, ClothingItem, Product
from product_search import ProductDiscoverer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], Union[None, Awaitable[None]]]

STEP_ANALYZING   = "Analyzing your outfit..."
STEP_DISCOVERING = "Searching stores for matching items..."


def step_found(item: ClothingItem, done: int, total: int) -> str:
    return f"Found products for {item.name} ({done}/{total})"


class PipelineState(enum.Enum):
    IDLE        = "idle"
    ANALYZING   = "analyzing"
    EMPTY       = "empty"
    DISCOVERING = "discovering"
    DONE        = "done"
    FAILED      = "failed"


class AnalysisOrchestrator:
    """
    Runs the two-stage pipeline for one image at a time.
    Create one per run (or per caller): `state` reflects the latest run.
    """

    def __init__(
        self,
        analyzer: Optional[VisionAnalyzer] = None,
        discoverer: Optional[ProductDiscoverer] = None,
    ):
        self.analyzer   = analyzer or VisionAnalyzer()
        self.discoverer = discoverer or ProductDiscoverer()
        self.state      = PipelineState.IDLE

    def _transition(self, state: PipelineState) -> None:
        logger.info("Pipeline %s → %s", self.state.value, state.value)
        self.state = state

    async def run(
        self,
        image_bytes: bytes,
        media_type: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AnalysisResult:
        """
        Analyse the image and attach retailer links to every detected item.
        Raises AnalysisError (only) when the vision stage fails.
        """
        self._transition(PipelineState.ANALYZING)
        await _emit(on_progress, STEP_ANALYZING)
        try:
            analysis = await self.analyzer.analyze(image_bytes, media_type)
        except AnalysisError:
            self._transition(PipelineState.FAILED)
            raise

        if analysis.is_empty:
            self._transition(PipelineState.EMPTY)
            self._transition(PipelineState.DONE)
            return analysis

        self._transition(PipelineState.DISCOVERING)
        await _emit(on_progress, STEP_DISCOVERING)

        total = len(analysis.items)
        done  = 0

        async def _discover(item: ClothingItem) -> list[Product]:
            nonlocal done
            try:
                products = await self.discoverer.discover(item)
            except Exception as exc:
                logger.error("Discovery for '%s' raised unexpectedly: %s", item.name, exc)
                products = []
            if not products:
                products = build_fallback(item.search_terms)
            done += 1
            await _emit(on_progress, step_found(item, done, total))
            return products

        results = await asyncio.gather(*[_discover(item) for item in analysis.items])

        merged = AnalysisResult(
            items=tuple(item.with_products(products) for item, products in zip(analysis.items, results)),
            overall_style=analysis.overall_style,
        )
        self._transition(PipelineState.DONE)
        return merged


async def _emit(callback: Optional[ProgressCallback], label: str) -> None:
    """Deliver a progress label. A failing callback never breaks the pipeline."""
    logger.debug("Progress: %s", label)
    if callback is None:
        return
    try:
        result = callback(label)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logger.warning("Progress callback failed: %s", exc)
