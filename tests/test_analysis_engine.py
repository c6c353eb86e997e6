"""
Tests for the scoring engine:
- JSON extraction and per-item validation
- batching, repair retry, batch error recording
- 10-point rounding and scoring distribution
"""

import json
from pathlib import Path

import pytest
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from analysis.engine import (
    Analyzer,
    _extract_json_array,
    _validate_analysis_dict,
    parse_analyses_json,
    scoring_distribution,
    summary_text,
)
from llm.provider import LLMError, LLMProvider, LLMResponse
from models import Analysis, AnalysisRun, Signal


# ──────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────

def _make_analysis_dict(**overrides):
    """Factory for a valid analysis dict."""
    base = {
        "project_name": "Scroll",
        "opportunity_type": "Mainnet",
        "importance": "High",
        "investment_angle": "Mainnet upgrade ships ahead of the token unlock.",
        "risk_level": "Medium",
        "evidence": ["https://github.com/scroll-tech/scroll/releases/tag/v5.0.0"],
        "reasoning": "Release notes mention the Euclid upgrade on mainnet.",
        "score": 82,
        "market_impact": "High",
        "timeline": "Short-term",
    }
    base.update(overrides)
    return base


def _signals(n: int) -> list[Signal]:
    return [
        Signal(source=f"src{i}", title=f"Signal {i}", link=f"https://example.com/{i}", channel="rss")
        for i in range(n)
    ]


class FakeLLM(LLMProvider):
    """Returns queued responses in order. An exception in the queue is raised."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, system_prompt, user_prompt, temperature=0.3, max_tokens=2000):
        self.calls.append(user_prompt)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return LLMResponse(text=item, input_tokens=10, output_tokens=20, model="fake")

    def name(self):
        return "fake"


# ──────────────────────────────────────────────
# JSON extraction tests
# ──────────────────────────────────────────────

class TestExtractJsonArray:
    def test_plain_array(self):
        assert _extract_json_array('[{"a": 1}]') == '[{"a": 1}]'

    def test_with_markdown_fences(self):
        text = '```json\n[{"a": 1}]\n```'
        assert _extract_json_array(text) == '[{"a": 1}]'

    def test_with_surrounding_text(self):
        text = 'Here are the results:\n[{"a": 1}]\nDone.'
        assert _extract_json_array(text) == '[{"a": 1}]'

    def test_brackets_inside_strings(self):
        text = '[{"a": "x] and [y"}] trailing'
        assert _extract_json_array(text) == '[{"a": "x] and [y"}]'

    def test_lone_object_wrapped(self):
        assert _extract_json_array('{"a": 1}') == '[{"a": 1}]'

    def test_no_array(self):
        with pytest.raises(ValueError, match="No JSON array"):
            _extract_json_array("just some text")

    def test_unbalanced_brackets(self):
        with pytest.raises(ValueError, match="Unbalanced"):
            _extract_json_array("[{incomplete")


# ──────────────────────────────────────────────
# Validation tests
# ──────────────────────────────────────────────

class TestValidateAnalysisDict:
    def test_valid(self):
        assert _validate_analysis_dict(_make_analysis_dict()) == []

    def test_missing_project_name(self):
        d = _make_analysis_dict()
        del d["project_name"]
        assert any("project_name" in e for e in _validate_analysis_dict(d))

    def test_score_out_of_range(self):
        errors = _validate_analysis_dict(_make_analysis_dict(score=150))
        assert any("1-100" in e for e in errors)

    def test_score_must_be_number(self):
        assert _validate_analysis_dict(_make_analysis_dict(score="high"))
        assert _validate_analysis_dict(_make_analysis_dict(score=True))

    def test_bad_importance(self):
        errors = _validate_analysis_dict(_make_analysis_dict(importance="Huge"))
        assert any("importance" in e for e in errors)

    def test_evidence_string_allowed(self):
        assert _validate_analysis_dict(_make_analysis_dict(evidence="https://x.com/1")) == []

    def test_evidence_wrong_type(self):
        assert _validate_analysis_dict(_make_analysis_dict(evidence=42))


class TestParseAnalysesJson:
    def test_valid_items(self):
        analyses = parse_analyses_json(json.dumps([_make_analysis_dict()]))
        assert len(analyses) == 1
        assert analyses[0].project_name == "Scroll"
        assert analyses[0].primary_link.endswith("v5.0.0")

    def test_invalid_items_dropped(self):
        raw = json.dumps([_make_analysis_dict(), _make_analysis_dict(score=0), "junk"])
        analyses = parse_analyses_json(raw)
        assert [a.project_name for a in analyses] == ["Scroll"]

    def test_all_invalid_raises(self):
        with pytest.raises(ValueError, match="failed validation"):
            parse_analyses_json(json.dumps([_make_analysis_dict(project_name="")]))

    def test_not_json(self):
        with pytest.raises(ValueError):
            parse_analyses_json("[not json]")


# ──────────────────────────────────────────────
# Model tests
# ──────────────────────────────────────────────

class TestAnalysisModel:
    @pytest.mark.parametrize("score,expected", [(85, 9), (84, 8), (75, 8), (74, 7), (5, 1), (4, 0)])
    def test_score_out_of_10_rounds_half_up(self, score, expected):
        assert Analysis.from_dict(_make_analysis_dict(score=score)).score_out_of_10 == expected

    def test_from_dict_defaults(self):
        a = Analysis.from_dict({"score": "n/a"})
        assert a.project_name == "Unknown"
        assert a.score == 0
        assert a.evidence == []
        assert a.primary_link == ""


# ──────────────────────────────────────────────
# Analyzer tests
# ──────────────────────────────────────────────

class TestAnalyzer:
    def test_batches_and_delay(self):
        batch_1 = json.dumps([_make_analysis_dict(project_name=f"P{i}") for i in range(10)])
        batch_2 = json.dumps([_make_analysis_dict(project_name="P10"), _make_analysis_dict(project_name="P11")])
        llm = FakeLLM([batch_1, batch_2])
        sleeps = []

        run = Analyzer(llm, batch_size=10, batch_delay=5.0, sleep=sleeps.append).analyze(_signals(12))

        assert len(llm.calls) == 2
        assert sleeps == [5.0]
        assert run.total_signals == 12
        assert run.analyzed_signals == 12
        assert len(run.all_analyses) == 12
        assert run.errors == []

    def test_prompt_carries_signal_urls(self):
        llm = FakeLLM([json.dumps([_make_analysis_dict()])])
        Analyzer(llm, batch_delay=0).analyze(_signals(1))
        assert "URL: https://example.com/0" in llm.calls[0]
        assert "Analyze ALL 1 signals" in llm.calls[0]

    def test_repair_retry(self):
        llm = FakeLLM(["Sorry, here you go: not json", json.dumps([_make_analysis_dict()])])
        run = Analyzer(llm, batch_delay=0).analyze(_signals(1))
        assert len(llm.calls) == 2
        assert "could not be parsed" in llm.calls[1]
        assert len(run.all_analyses) == 1

    def test_failed_batch_recorded(self):
        llm = FakeLLM([LLMError("quota"), json.dumps([_make_analysis_dict()])])
        run = Analyzer(llm, batch_size=1, batch_delay=0).analyze(_signals(2))
        assert run.errors == [{"batch_index": 0, "error": "quota"}]
        assert run.analyzed_signals == 1
        assert len(run.all_analyses) == 1

    def test_repair_failure_recorded(self):
        llm = FakeLLM(["nope", "still nope"])
        run = Analyzer(llm, batch_delay=0).analyze(_signals(1))
        assert len(run.errors) == 1
        assert run.all_analyses == []


class TestSummary:
    def test_distribution(self):
        analyses = [Analysis.from_dict(_make_analysis_dict(score=s)) for s in (95, 70, 55, 40, 20)]
        assert scoring_distribution(analyses) == {"good": 2, "check": 2, "scam": 1}

    def test_summary_text(self):
        run = AnalysisRun(total_signals=1, analyzed_signals=1)
        run.all_analyses = [Analysis.from_dict(_make_analysis_dict())]
        text = summary_text(run, "2026-03-10")
        assert text.startswith("Signal Analysis Results - 2026-03-10")
        assert "Good Opportunities (7-10): 1" in text
        assert "1. Scroll (Score: 8/10)" in text
