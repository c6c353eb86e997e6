"""
Tests for multi-key rotation and provider selection.
"""

import json
import tempfile
from pathlib import Path

import pytest
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import Config, numbered_keys
from llm.factory import create_provider
from llm.key_pool import KeyPool, RotatingProvider
from llm.provider import LLMError, LLMProvider, LLMRateLimitError, LLMResponse, classify_error


# ──────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────

@pytest.fixture
def usage_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "llm_usage_2026-03-10.json"


KEYS = [("KEY1", "secret-1"), ("KEY2", "secret-2"), ("KEY3", "secret-3")]


class ScriptedProvider(LLMProvider):
    """Behaviour per secret: an exception to raise, or text to return."""

    def __init__(self, secret, script):
        self.secret = secret
        self.script = script

    def complete(self, system_prompt, user_prompt, temperature=0.3, max_tokens=2000):
        outcome = self.script[self.secret]
        if isinstance(outcome, Exception):
            raise outcome
        return LLMResponse(text=outcome, input_tokens=1, output_tokens=1, model=self.secret)

    def name(self):
        return self.secret


def _rotating(usage_path, script, keys=KEYS):
    pool = KeyPool(keys, usage_path, max_requests_per_key=50)
    sleeps = []
    provider = RotatingProvider(pool, lambda s: ScriptedProvider(s, script), "fake", sleep=sleeps.append)
    return provider, pool, sleeps


# ──────────────────────────────────────────────
# KeyPool
# ──────────────────────────────────────────────

class TestKeyPool:
    def test_skips_spent_keys(self, usage_path):
        pool = KeyPool(KEYS, usage_path, max_requests_per_key=1)
        pool.record("KEY1")
        assert pool.next_key() == ("KEY2", "secret-2")

    def test_falls_back_to_first_when_all_spent(self, usage_path):
        pool = KeyPool(KEYS, usage_path)
        for name, _ in KEYS:
            pool.mark_exhausted(name)
        assert pool.next_key() == ("KEY1", "secret-1")

    def test_exhausted_after_three_errors(self, usage_path):
        pool = KeyPool(KEYS, usage_path)
        for _ in range(3):
            pool.record("KEY1", success=False)
        assert not pool.is_available("KEY1")

    def test_usage_persisted(self, usage_path):
        pool = KeyPool(KEYS, usage_path)
        pool.record("KEY2")
        data = json.loads(usage_path.read_text())
        assert data["KEY2"]["requests"] == 1

        reloaded = KeyPool(KEYS, usage_path, max_requests_per_key=1)
        assert not reloaded.is_available("KEY2")

    def test_status(self, usage_path):
        pool = KeyPool(KEYS, usage_path, max_requests_per_key=10)
        pool.record("KEY1")
        status = pool.status()
        assert status[0] == {"name": "KEY1", "requests": 1, "remaining": 9, "errors": 0, "exhausted": False}

    def test_no_keys(self, usage_path):
        with pytest.raises(LLMError):
            KeyPool([], usage_path).next_key()


# ──────────────────────────────────────────────
# RotatingProvider
# ──────────────────────────────────────────────

class TestRotatingProvider:
    def test_rotates_on_rate_limit(self, usage_path):
        script = {
            "secret-1": LLMRateLimitError("quota", status=429),
            "secret-2": "ok",
            "secret-3": "unused",
        }
        provider, pool, sleeps = _rotating(usage_path, script)
        response = provider.complete("sys", "user")
        assert response.text == "ok"
        assert not pool.is_available("KEY1")
        assert sleeps == [3.0]

    def test_rotates_on_unavailable_without_exhausting(self, usage_path):
        script = {
            "secret-1": LLMRateLimitError("overloaded", status=503),
            "secret-2": "ok",
            "secret-3": "unused",
        }
        provider, pool, _ = _rotating(usage_path, script)
        assert provider.complete("sys", "user").text == "ok"
        assert pool.is_available("KEY1")

    def test_other_errors_raise(self, usage_path):
        script = {"secret-1": LLMError("bad request"), "secret-2": "ok", "secret-3": "ok"}
        provider, _, _ = _rotating(usage_path, script)
        with pytest.raises(LLMError, match="bad request"):
            provider.complete("sys", "user")

    def test_all_keys_fail(self, usage_path):
        limit = LLMRateLimitError("quota", status=429)
        script = {"secret-1": limit, "secret-2": limit, "secret-3": limit}
        provider, _, sleeps = _rotating(usage_path, script)
        with pytest.raises(LLMError, match="All fake API keys failed"):
            provider.complete("sys", "user")
        assert len(sleeps) == 2


class TestClassifyError:
    def test_429(self):
        err = classify_error("Gemini API error", Exception("429 RESOURCE_EXHAUSTED"))
        assert isinstance(err, LLMRateLimitError)
        assert err.status == 429

    def test_503(self):
        err = classify_error("x", Exception("503 Service Unavailable"))
        assert isinstance(err, LLMRateLimitError)
        assert err.status == 503

    def test_other(self):
        err = classify_error("x", Exception("invalid argument"))
        assert type(err) is LLMError


# ──────────────────────────────────────────────
# Config / factory
# ──────────────────────────────────────────────

class TestKeysFromEnv:
    def test_numbered_keys(self, monkeypatch):
        monkeypatch.setenv("TESTKEY1", "a")
        monkeypatch.setenv("TESTKEY3", "c")
        monkeypatch.setenv("TESTKEY", "plain")
        assert numbered_keys("TESTKEY") == [("TESTKEY1", "a"), ("TESTKEY3", "c")]

    def test_plain_fallback(self, monkeypatch):
        monkeypatch.setenv("OTHERKEY", "plain")
        assert numbered_keys("OTHERKEY") == [("OTHERKEY", "plain")]

    def test_factory_without_keys(self, usage_path, monkeypatch):
        for i in range(1, 11):
            monkeypatch.delenv(f"OPENAI_API_KEY{i}", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(LLMError, match="No API keys"):
            create_provider(Config(llm_provider="openai"), usage_path)

    def test_factory_unknown_provider(self, usage_path):
        with pytest.raises(LLMError, match="Unknown LLM provider"):
            create_provider(Config(llm_provider="mystery"), usage_path)
