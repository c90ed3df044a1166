"""
Tests for image_analyzer.py.

Covers:
  - detect_mime_type / normalize_mime_type: magic bytes, aliases, rejection
  - parse_analysis(): required fields, empty items, overallStyle handling
  - VisionAnalyzer.analyze(): success, fenced output, every failure → AnalysisError
"""
from __future__ import annotations

import json

import pytest

from conftest import JPEG_BYTES, PNG_BYTES, analysis_json, item_dict
from image_analyzer import (
    AnalysisError,
    SchemaError,
    VisionAnalyzer,
    detect_mime_type,
    normalize_mime_type,
    parse_analysis,
)
from providers.base import ANALYSIS_SCHEMA, TransportError


# ── MIME handling ─────────────────────────────────────────────────────────────

class TestMimeType:
    def test_detect_png(self):
        assert detect_mime_type(PNG_BYTES) == "image/png"

    def test_detect_jpeg(self):
        assert detect_mime_type(JPEG_BYTES) == "image/jpeg"

    def test_detect_webp(self):
        assert detect_mime_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"

    def test_detect_heic(self):
        assert detect_mime_type(b"\x00\x00\x00\x18ftypheic\x00\x00") == "image/heic"

    def test_detect_unknown(self):
        assert detect_mime_type(b"GIF89a....") is None

    def test_jpg_alias_normalised(self):
        assert normalize_mime_type("image/jpg", JPEG_BYTES) == "image/jpeg"

    def test_parameters_and_case_stripped(self):
        assert normalize_mime_type("Image/PNG; charset=binary", PNG_BYTES) == "image/png"

    def test_missing_type_is_sniffed(self):
        assert normalize_mime_type(None, PNG_BYTES) == "image/png"

    def test_non_image_rejected(self):
        with pytest.raises(AnalysisError, match="Unsupported image type"):
            normalize_mime_type("application/pdf", b"%PDF-1.4")

    def test_unrecognised_bytes_without_type_rejected(self):
        with pytest.raises(AnalysisError):
            normalize_mime_type(None, b"plain text")


# ── parse_analysis ────────────────────────────────────────────────────────────

class TestParseAnalysis:
    def test_items_mapped_in_order(self):
        result = parse_analysis(json.loads(analysis_json("Jacket", "Jeans", "Boots")))
        assert [i.name for i in result.items] == ["Jacket", "Jeans", "Boots"]
        assert result.items[0].estimated_price == "$50-80"
        assert result.items[0].search_terms == "blue casual jacket"
        assert result.items[0].products == ()
        assert result.overall_style == "casual"

    def test_empty_items_is_valid(self):
        result = parse_analysis({"items": [], "overallStyle": "n/a"})
        assert result.items == ()
        assert result.is_empty

    def test_empty_string_fields_allowed(self):
        result = parse_analysis({"items": [item_dict(color="")], "overallStyle": ""})
        assert result.items[0].color == ""

    def test_missing_field_rejected(self):
        raw = item_dict()
        del raw["searchTerms"]
        with pytest.raises(SchemaError, match="searchTerms"):
            parse_analysis({"items": [raw], "overallStyle": "casual"})

    def test_null_field_rejected(self):
        with pytest.raises(SchemaError, match="color"):
            parse_analysis({"items": [item_dict(color=None)], "overallStyle": "casual"})

    def test_items_not_a_list(self):
        with pytest.raises(SchemaError):
            parse_analysis({"items": {"name": "Jacket"}, "overallStyle": "casual"})

    def test_missing_items(self):
        with pytest.raises(SchemaError):
            parse_analysis({"overallStyle": "casual"})

    def test_root_not_object(self):
        with pytest.raises(SchemaError):
            parse_analysis([item_dict()])

    def test_item_not_object(self):
        with pytest.raises(SchemaError):
            parse_analysis({"items": ["Jacket"], "overallStyle": "casual"})

    def test_missing_overall_style_tolerated(self):
        assert parse_analysis({"items": []}).overall_style == ""

    def test_non_string_overall_style_rejected(self):
        with pytest.raises(SchemaError):
            parse_analysis({"items": [], "overallStyle": 3})


# ── VisionAnalyzer.analyze ────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestAnalyze:
    async def test_success_sends_image_mime_and_schema(self, fake_provider):
        fake_provider.vision_reply = analysis_json("Jacket")
        result = await VisionAnalyzer(fake_provider).analyze(PNG_BYTES, "image/png")

        assert [i.name for i in result.items] == ["Jacket"]
        image_bytes, mime, schema = fake_provider.vision_calls[0]
        assert image_bytes == PNG_BYTES
        assert mime == "image/png"
        assert schema is ANALYSIS_SCHEMA

    async def test_fenced_output_still_parsed(self, fake_provider):
        fake_provider.vision_reply = f"```json\n{analysis_json('Shirt')}\n```"
        result = await VisionAnalyzer(fake_provider).analyze(JPEG_BYTES, "image/jpeg")
        assert result.items[0].name == "Shirt"

    async def test_no_clothing_is_not_an_error(self, fake_provider):
        fake_provider.vision_reply = json.dumps({"items": [], "overallStyle": ""})
        result = await VisionAnalyzer(fake_provider).analyze(PNG_BYTES, "image/png")
        assert result.is_empty

    async def test_empty_text_raises(self, fake_provider):
        fake_provider.vision_reply = ""
        with pytest.raises(AnalysisError):
            await VisionAnalyzer(fake_provider).analyze(PNG_BYTES, "image/png")

    async def test_unparseable_text_raises(self, fake_provider):
        fake_provider.vision_reply = "I see a nice outfit!"
        with pytest.raises(AnalysisError) as info:
            await VisionAnalyzer(fake_provider).analyze(PNG_BYTES, "image/png")
        assert info.value.__cause__ is not None

    async def test_schema_violation_raises(self, fake_provider):
        fake_provider.vision_reply = json.dumps({"items": [{"name": "Jacket"}], "overallStyle": "x"})
        with pytest.raises(AnalysisError) as info:
            await VisionAnalyzer(fake_provider).analyze(PNG_BYTES, "image/png")
        assert isinstance(info.value.__cause__, SchemaError)

    async def test_transport_error_raises(self, fake_provider):
        fake_provider.vision_reply = TransportError("quota exceeded")
        with pytest.raises(AnalysisError) as info:
            await VisionAnalyzer(fake_provider).analyze(PNG_BYTES, "image/png")
        assert isinstance(info.value.__cause__, TransportError)
        assert info.value.retryable is True

    async def test_empty_payload_rejected_without_model_call(self, fake_provider):
        with pytest.raises(AnalysisError) as info:
            await VisionAnalyzer(fake_provider).analyze(b"", "image/png")
        assert fake_provider.vision_calls == []
        assert info.value.retryable is False

    async def test_unsupported_type_rejected_without_model_call(self, fake_provider):
        with pytest.raises(AnalysisError) as info:
            await VisionAnalyzer(fake_provider).analyze(b"GIF89a", "image/gif")
        assert fake_provider.vision_calls == []
        assert info.value.retryable is False

    async def test_unparseable_reply_is_retryable(self, fake_provider):
        fake_provider.vision_reply = "sorry, I cannot help"
        with pytest.raises(AnalysisError) as info:
            await VisionAnalyzer(fake_provider).analyze(PNG_BYTES, "image/png")
        assert info.value.retryable is True

    async def test_missing_api_key_becomes_analysis_error(self):
        # conftest clears GOOGLE_API_KEY, so the lazy provider lookup fails
        with pytest.raises(AnalysisError) as info:
            await VisionAnalyzer().analyze(PNG_BYTES, "image/png")
        assert isinstance(info.value.__cause__, TransportError)
