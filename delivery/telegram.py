"""
Telegram Bot API publisher.

send() reports a boolean result and never raises. The retry policy is an
explicit object so the orchestrator and tests can see and tune it:

- up to `max_attempts` attempts, linear backoff (2s x attempt) between them
- a Markdown "can't parse entities" error flips to plain text and retries
  immediately, without using up an attempt
- HTTP/API 429 waits for the server's retry_after before the next attempt
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import requests

from models import SendResult

log = logging.getLogger(__name__)

BASE_URL = "https://api.telegram.org/bot{token}/{method}"
MAX_MESSAGE_LENGTH = 4096


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 2.0
    default_retry_after: float = 60.0
    plain_text_fallback: bool = True

    def backoff(self, attempt: int) -> float:
        return self.backoff_seconds * attempt


def _is_parse_error(description: str) -> bool:
    return "can't parse entities" in description.lower()


class TelegramPublisher:
    def __init__(
        self,
        token: str,
        chat_id: str,
        policy: RetryPolicy | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: int = 15,
    ):
        self._token = token
        self._chat_id = chat_id
        self.policy = policy or RetryPolicy()
        self._session = session or requests.Session()
        self._sleep = sleep
        self._timeout = timeout

    def send(self, text: str) -> SendResult:
        url = BASE_URL.format(token=self._token, method="sendMessage")
        text = text[:MAX_MESSAGE_LENGTH]
        markdown = True
        last_error = "unknown error"
        attempt = 1

        while attempt <= self.policy.max_attempts:
            payload = {"chat_id": self._chat_id, "text": text, "disable_web_page_preview": False}
            if markdown:
                payload["parse_mode"] = "Markdown"

            try:
                resp = self._session.post(url, json=payload, timeout=self._timeout)
                data = resp.json()
            except (requests.RequestException, ValueError) as e:
                last_error = f"network error: {e}"
                log.warning(f"Telegram send attempt {attempt}/{self.policy.max_attempts} failed: {e}")
                if attempt < self.policy.max_attempts:
                    self._sleep(self.policy.backoff(attempt))
                attempt += 1
                continue

            if data.get("ok"):
                message_id = (data.get("result") or {}).get("message_id")
                log.debug(f"Message sent (attempt {attempt}, id={message_id})")
                return SendResult(success=True, message_id=message_id)

            description = str(data.get("description", ""))
            last_error = description or f"HTTP {resp.status_code}"
            log.warning(f"Telegram API error (attempt {attempt}): {last_error}")

            if markdown and self.policy.plain_text_fallback and _is_parse_error(description):
                log.info("Markdown parse error, retrying as plain text")
                markdown = False
                continue

            if data.get("error_code") == 429 or resp.status_code == 429:
                retry_after = (data.get("parameters") or {}).get("retry_after") or self.policy.default_retry_after
                log.warning(f"Rate limited. Waiting {retry_after}s")
                self._sleep(float(retry_after))
            elif attempt < self.policy.max_attempts:
                self._sleep(self.policy.backoff(attempt))
            attempt += 1

        log.error(f"Failed to send message after {self.policy.max_attempts} attempts: {last_error}")
        return SendResult(success=False, error=f"Max retries exceeded: {last_error}")
