"""
Shared pytest fixtures.

Tests never talk to a real model: the `fake_provider` fixture gives each test
a scripted ModelProvider, and the provider cache and per-client sessions are
reset around every test.
"""
from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Union

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from providers.base import ModelProvider  # noqa: E402

PNG_BYTES  = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32

SearchReply = Union[str, BaseException, Callable[[str], Any]]


def item_dict(name: str = "Jacket", **overrides) -> dict[str, str]:
    data = {
        "name":           name,
        "description":    f"A {name.lower()}",
        "color":          "blue",
        "style":          "casual",
        "estimatedPrice": "$50-80",
        "searchTerms":    f"blue casual {name.lower()}",
    }
    data.update(overrides)
    return data


def analysis_json(*names: str, overall: str = "casual") -> str:
    return json.dumps({"items": [item_dict(n) for n in names], "overallStyle": overall})


def products_json(*stores: str) -> str:
    return json.dumps({"products": [
        {
            "title": f"Search at {s}",
            "store": s,
            "price": "Check Price",
            "url":   f"https://www.{s.lower()}.com/search?q=jacket",
            "description": f"Options at {s}",
        }
        for s in stores
    ]})


class FakeProvider(ModelProvider):
    """
    Scripted provider.
      vision_reply: text to return, or an exception to raise
      search_replies: {item name found in prompt: reply}; default_search otherwise
      search_delays: {item name: seconds} to control completion order
    """

    def __init__(self):
        self.name = "fake"
        self.model_id = "fake-model"
        self.vision_reply: Union[str, BaseException] = analysis_json()
        self.search_replies: dict[str, SearchReply] = {}
        self.default_search: SearchReply = products_json("Nordstrom", "ASOS", "Zara")
        self.search_delays: dict[str, float] = {}
        self.vision_calls: list[tuple[bytes, str, dict]] = []
        self.search_prompts: list[str] = []

    async def vision_analyze(self, image_bytes, mime_type, schema) -> str:
        self.vision_calls.append((image_bytes, mime_type, schema))
        if isinstance(self.vision_reply, BaseException):
            raise self.vision_reply
        return self.vision_reply

    async def grounded_search(self, prompt: str) -> str:
        self.search_prompts.append(prompt)
        key: Optional[str] = next((k for k in self.search_replies if k.lower() in prompt.lower()), None)
        delay = next((d for k, d in self.search_delays.items() if k.lower() in prompt.lower()), 0)
        if delay:
            await asyncio.sleep(delay)
        reply = self.search_replies[key] if key is not None else self.default_search
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture(autouse=True)
def reset_state(monkeypatch):
    """Clean provider cache and session table for every test."""
    import config
    import providers.manager as manager_mod
    import session as session_mod

    monkeypatch.setattr(config, "GOOGLE_API_KEY", None)
    manager_mod.reset()
    session_mod._sessions.clear()
    yield
    manager_mod.reset()
    session_mod._sessions.clear()
