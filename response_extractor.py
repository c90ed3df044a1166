"""
response_extractor.py — recover a JSON value from raw model output.

Models are asked for JSON but regularly wrap it in markdown fences or
surround it with prose. extract_json() tries, in order:

  1. the whole (trimmed) text as JSON
  2. the interior of a ```json fenced block (then an unlabelled ``` block)
  3. the first balanced {...} span found by brace scanning
  4. the greedy span from the first "{" to the last "}"

and raises ExtractionError when none of them parse. Callers only ever use
extract_json(); the scanning strategy can change without touching them.

Every step is a single pass over the text: extraction runs inline on the
event loop, so a garbled reply must not cost more than linear time.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

_FENCE = "```"
_FENCE_LABEL = re.compile(r"[\w-]*")

_MISSING = object()


class ExtractionError(ValueError):
    """No recoverable JSON in a model response. Keeps the raw text for diagnostics."""

    def __init__(self, message: str, text: Optional[str]):
        super().__init__(message)
        self.text = text


def extract_json(text: Optional[str]) -> Any:
    """
    Return the first JSON value recoverable from text.
    Raises ExtractionError when the text holds no parseable JSON.
    """
    if not isinstance(text, str) or not text.strip():
        raise ExtractionError("Empty model response", text)

    stripped = text.strip()

    value = _loads(stripped)
    if value is not _MISSING:
        return value

    blocks = list(_fenced_blocks(stripped))
    labelled   = [body for label, body in blocks if label == "json"]
    unlabelled = [body for label, body in blocks if label != "json"]
    for body in labelled + unlabelled:
        value = _loads(body.strip())
        if value is not _MISSING:
            return value

    for span in _balanced_spans(stripped):
        value = _loads(span)
        if isinstance(value, dict):
            return value

    first, last = stripped.find("{"), stripped.rfind("}")
    if first != -1 and last > first:
        value = _loads(stripped[first:last + 1])
        if value is not _MISSING:
            return value

    logger.debug("No JSON found in model response: %s", stripped[:300])
    raise ExtractionError("No JSON object found in model response", text)


def _loads(candidate: str) -> Any:
    if not candidate:
        return _MISSING
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, RecursionError):
        return _MISSING


def _fenced_blocks(text: str) -> Iterator[tuple[str, str]]:
    """Yield (lowercased label, body) for each closed ``` block, left to right."""
    pos = 0
    while True:
        start = text.find(_FENCE, pos)
        if start == -1:
            return
        end = text.find(_FENCE, start + len(_FENCE))
        if end == -1:
            return
        inner = text[start + len(_FENCE):end]
        label = _FENCE_LABEL.match(inner).group(0)
        yield label.lower(), inner[len(label):]
        pos = end + len(_FENCE)


def _balanced_spans(text: str) -> Iterator[str]:
    """
    Yield every top-level {...} span whose braces balance, left to right.
    Braces inside JSON strings (including escaped quotes) are ignored.
    A span left open at the end of the text ends the scan: nothing after
    its opening brace can bring the depth back to zero.
    """
    depth = 0
    start = 0
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if depth == 0:
            if ch == "{":
                start = i
                depth = 1
            continue
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]
