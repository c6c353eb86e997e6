"""
Multi-key rotation for free-tier LLM quotas.

KeyPool tracks per-key daily usage in data/llm_usage_<date>.json:
    {"GEMINI_API_KEY1": {"requests": 12, "errors": 0, "lastUsed": iso, "exhausted": false}}

A key is usable while it is under the per-key request cap and not exhausted.
A key becomes exhausted after 3 failed calls or a single 429.

RotatingProvider wraps one provider per key and moves to the next key on
rate-limit/unavailable errors. Any other error is raised immediately.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable

from llm.provider import LLMProvider, LLMResponse, LLMError, LLMRateLimitError
from storage.state import load_json, save_json, isoformat, utcnow

log = logging.getLogger(__name__)

MAX_ERRORS = 3


class KeyPool:
    def __init__(
        self,
        keys: list[tuple[str, str]],
        usage_path: Path,
        max_requests_per_key: int = 50,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.keys = keys                    # [(env var name, secret)]
        self.usage_path = usage_path
        self.max_requests_per_key = max_requests_per_key
        self.clock = clock
        self.usage: dict = load_json(usage_path, {})
        self._current = 0

    def _entry(self, name: str) -> dict:
        entry = self.usage.get(name)
        if not isinstance(entry, dict):
            entry = {"requests": 0, "errors": 0, "lastUsed": None, "exhausted": False}
            self.usage[name] = entry
        return entry

    def is_available(self, name: str) -> bool:
        entry = self._entry(name)
        return entry.get("requests", 0) < self.max_requests_per_key and not entry.get("exhausted")

    def next_key(self) -> tuple[str, str]:
        """
        The first usable key starting from the current position. When every
        key is spent, the first key is returned anyway.
        """
        if not self.keys:
            raise LLMError("No API keys configured")

        for i in range(len(self.keys)):
            index = (self._current + i) % len(self.keys)
            name, secret = self.keys[index]
            if self.is_available(name):
                self._current = index
                return name, secret

        log.warning("All API keys reached their daily limit. Using the first key anyway.")
        return self.keys[0]

    def record(self, name: str, success: bool = True):
        entry = self._entry(name)
        entry["requests"] = entry.get("requests", 0) + 1
        entry["lastUsed"] = isoformat(self.clock())
        if not success:
            entry["errors"] = entry.get("errors", 0) + 1
            if entry["errors"] >= MAX_ERRORS:
                entry["exhausted"] = True
                log.warning(f"Marking {name} as exhausted after {entry['errors']} errors")
        self.save()

    def advance(self):
        if self.keys:
            self._current = (self._current + 1) % len(self.keys)

    def mark_exhausted(self, name: str):
        self._entry(name)["exhausted"] = True
        self.save()

    def status(self) -> list[dict]:
        out = []
        for name, _ in self.keys:
            entry = self._entry(name)
            out.append({
                "name": name,
                "requests": entry.get("requests", 0),
                "remaining": max(0, self.max_requests_per_key - entry.get("requests", 0)),
                "errors": entry.get("errors", 0),
                "exhausted": bool(entry.get("exhausted")),
            })
        return out

    def save(self):
        save_json(self.usage_path, self.usage)


class RotatingProvider(LLMProvider):
    def __init__(
        self,
        pool: KeyPool,
        build: Callable[[str], LLMProvider],
        label: str,
        retry_delay: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._pool = pool
        self._build = build
        self._label = label
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._providers: dict[str, LLMProvider] = {}

    def _provider(self, name: str, secret: str) -> LLMProvider:
        if name not in self._providers:
            self._providers[name] = self._build(secret)
        return self._providers[name]

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        attempts = len(self._pool.keys)
        last_error: LLMError | None = None

        for attempt in range(attempts):
            name, secret = self._pool.next_key()
            log.debug(f"Attempt {attempt + 1}/{attempts} with {name}")
            try:
                response = self._provider(name, secret).complete(
                    system_prompt, user_prompt, temperature=temperature, max_tokens=max_tokens,
                )
            except LLMRateLimitError as e:
                self._pool.record(name, success=False)
                if e.status == 429:
                    self._pool.mark_exhausted(name)
                    log.warning(f"{name} rate limited, marked exhausted for today")
                else:
                    log.warning(f"{name} unavailable (HTTP {e.status}), trying next key")
                self._pool.advance()
                last_error = e
                if attempt < attempts - 1:
                    self._sleep(self._retry_delay)
                continue
            except LLMError:
                self._pool.record(name, success=False)
                raise

            self._pool.record(name, success=True)
            return response

        raise LLMError(f"All {self._label} API keys failed after {attempts} attempts: {last_error}")

    def name(self) -> str:
        return f"{self._label} (x{len(self._pool.keys)} keys)"
