"""
Google Gemini provider — uses the google-genai SDK (async client).

Vision:  structured output (response_mime_type=application/json + schema).
Search:  Google Search grounding tool; structured output is not available
         together with grounding, so the reply is free text.
"""
from __future__ import annotations

import time
import logging
from typing import Any

from google import genai
from google.genai import types as genai_types

from providers.base import ModelProvider, TransportError, VISION_PROMPT

logger = logging.getLogger(__name__)

_SAFETY_OFF = [
    genai_types.SafetySetting(category="HARM_CATEGORY_HARASSMENT",        threshold="OFF"),
    genai_types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH",       threshold="OFF"),
    genai_types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="OFF"),
    genai_types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="OFF"),
]

_SEARCH_TOOL = genai_types.Tool(google_search=genai_types.GoogleSearch())


class GeminiProvider(ModelProvider):

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        search_model: str | None = None,
    ):
        self.name         = "google"
        self.model_id     = model
        self.search_model = search_model or model
        self._client      = genai.Client(api_key=api_key)

    async def vision_analyze(
        self,
        image_bytes: bytes,
        mime_type: str,
        schema: dict[str, Any],
    ) -> str:
        gen_config = genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            temperature=0,
            safety_settings=_SAFETY_OFF,
        )
        return await self._generate(
            self.model_id,
            [
                genai_types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                VISION_PROMPT,
            ],
            gen_config,
        )

    async def grounded_search(self, prompt: str) -> str:
        gen_config = genai_types.GenerateContentConfig(
            tools=[_SEARCH_TOOL],
            safety_settings=_SAFETY_OFF,
        )
        return await self._generate(self.search_model, prompt, gen_config)

    async def _generate(self, model: str, contents: Any, gen_config) -> str:
        t0 = time.monotonic()
        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=gen_config,
            )
        except Exception as exc:
            raise TransportError(f"[{self.name}/{model}] request failed: {exc}") from exc

        latency_ms = int((time.monotonic() - t0) * 1000)
        usage = response.usage_metadata
        logger.info(
            "[%s/%s] OK — latency=%dms tokens=%s/%s",
            self.name, model, latency_ms,
            getattr(usage, "prompt_token_count", "?"),
            getattr(usage, "candidates_token_count", "?"),
        )
        return response.text or ""
