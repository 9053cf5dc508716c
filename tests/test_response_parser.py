"""Unit tests for analysis response parsing."""

import json

import pytest

from selfswipe.exceptions import MalformedResponseError
from selfswipe.utils.response_parser import (
    extract_json_object,
    extract_numbered_prompts,
    parse_analysis_response,
)


def structured_text(prompt_count, **analysis):
    payload = {
        "analysis": {"gender": "female", "ageRange": "20-30", "hairColor": "brown", **analysis},
        "prompts": [f"Change only the hair to style {i}" for i in range(1, prompt_count + 1)],
    }
    return json.dumps(payload)


class TestExtractJsonObject:

    def test_plain_json(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_json_inside_markdown_fence(self):
        text = 'Here you go:\n```json\n{"a": {"b": 2}}\n```\nEnjoy!'
        assert extract_json_object(text) == {"a": {"b": 2}}

    def test_no_json(self):
        assert extract_json_object("no braces at all") is None

    def test_invalid_json(self):
        assert extract_json_object("{not: valid}") is None


class TestExtractNumberedPrompts:

    def test_various_numbering_styles(self):
        text = (
            "Sure, here are some ideas:\n"
            "1. Sleek bob\n"
            "2) \"Long beach waves\"\n"
            "**3.** Curly pixie\n"
            "Some closing remark"
        )
        assert extract_numbered_prompts(text) == ["Sleek bob", "Long beach waves", "Curly pixie"]

    def test_ignores_unnumbered_lines(self):
        assert extract_numbered_prompts("one\ntwo\n- three") == []


class TestParseAnalysisResponse:

    def test_structured_response(self):
        plan = parse_analysis_response(structured_text(10), count=10)

        assert len(plan.prompts) == 10
        assert plan.analysis.gender == "female"
        assert plan.analysis.age_range == "20-30"
        assert not plan.used_fallback

    def test_fewer_prompts_are_not_padded(self):
        """Seven usable prompts out of ten requested stay seven."""
        plan = parse_analysis_response(structured_text(7), count=10)

        assert len(plan.prompts) == 7

    def test_extra_prompts_are_truncated(self):
        plan = parse_analysis_response(structured_text(12), count=10)

        assert len(plan.prompts) == 10
        assert plan.prompts[-1].endswith("style 10")

    def test_blank_prompts_are_dropped(self):
        text = json.dumps({"analysis": {}, "prompts": ["  ", "Keep this one", 42]})
        plan = parse_analysis_response(text, count=5)

        assert plan.prompts == ["Keep this one"]

    def test_missing_analysis_fields_default_to_unknown(self):
        text = json.dumps({"analysis": {"gender": "male"}, "prompts": ["p1"]})
        plan = parse_analysis_response(text, count=1)

        assert plan.analysis.gender == "male"
        assert plan.analysis.face_shape == "unknown"

    def test_numbered_fallback(self):
        """Unstructured text still yields prompts with an all-unknown analysis."""
        text = "1. First idea\n2. Second idea\n3. Third idea"
        plan = parse_analysis_response(text, count=2)

        assert plan.used_fallback
        assert plan.prompts == ["First idea", "Second idea"]
        assert plan.analysis.is_unknown

    def test_nothing_recoverable(self):
        with pytest.raises(MalformedResponseError):
            parse_analysis_response("I'm sorry, I can't help with that.", count=10)
