"""
session.py — per-client analysis state with a generation counter.

In-flight model calls are not aborted when a client resets or submits a new
photo. Instead every submission bumps the session's generation; a run that
finishes after its generation has been superseded is discarded and its
caller gets SupersededError, so late results never overwrite newer state.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional

import config
from image_analyzer import AnalysisError
from outfit import AnalysisResult
from pipeline import AnalysisOrchestrator, ProgressCallback

logger = logging.getLogger(__name__)


class SupersededError(Exception):
    """The run finished after a newer submission or reset — result discarded."""


@dataclass
class AnalysisSession:
    client_id: str
    orchestrator_factory: Callable[[], AnalysisOrchestrator] = AnalysisOrchestrator

    generation: int = 0
    result: Optional[AnalysisResult] = None

    # Kept so retry() can re-run the whole pipeline without re-upload
    image_bytes: Optional[bytes] = field(default=None, repr=False)
    media_type: Optional[str] = None

    async def submit(
        self,
        image_bytes: bytes,
        media_type: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AnalysisResult:
        """
        Run the pipeline for a new image. Raises AnalysisError on vision
        failure, SupersededError if reset()/submit() was called meanwhile.
        """
        self.generation += 1
        generation = self.generation
        self.image_bytes = image_bytes
        self.media_type  = media_type
        self.result      = None

        orchestrator = self.orchestrator_factory()
        try:
            result = await orchestrator.run(image_bytes, media_type, on_progress)
        except AnalysisError:
            self._check_current(generation)
            raise

        self._check_current(generation)
        self.result = result
        return result

    def _check_current(self, generation: int) -> None:
        if generation != self.generation:
            logger.info(
                "[%s] Discarding result of generation %d (current %d)",
                self.client_id, generation, self.generation,
            )
            raise SupersededError(f"Run {generation} superseded by run {self.generation}")

    async def retry(self, on_progress: Optional[ProgressCallback] = None) -> AnalysisResult:
        if self.image_bytes is None:
            raise LookupError("Nothing to retry — no image submitted yet")
        return await self.submit(self.image_bytes, self.media_type, on_progress)

    def reset(self) -> None:
        self.generation += 1
        self.release()

    def release(self) -> None:
        """Drop the stored image and result; an in-flight run still answers its caller."""
        self.result      = None
        self.image_bytes = None
        self.media_type  = None


# Least-recently-used first; capped at config.MAX_SESSIONS
_sessions: OrderedDict[str, AnalysisSession] = OrderedDict()


def get_session(client_id: str) -> AnalysisSession:
    session = _sessions.get(client_id)
    if session is None:
        session = _sessions[client_id] = AnalysisSession(client_id)
    _sessions.move_to_end(client_id)

    while len(_sessions) > max(1, config.MAX_SESSIONS):
        evicted_id, evicted = _sessions.popitem(last=False)
        evicted.release()
        logger.info("Evicted idle session %s (%d kept)", evicted_id, len(_sessions))
    return session


def drop_session(client_id: str) -> None:
    session = _sessions.pop(client_id, None)
    if session is not None:
        session.reset()
