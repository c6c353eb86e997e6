"""
LLMProvider interface. Every LLM call in the system goes through it.

Implementations live in separate modules. No provider-specific
logic exists outside of llm/*.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class LLMResponse:
    """What comes back from any LLM call."""
    text: str
    input_tokens: int
    output_tokens: int
    model: str


class LLMProvider(ABC):
    """
    Single interface for all LLM providers.

    - One method: `complete`. System prompt + user prompt, no chat history.
      Scoring is a batch job, not a conversation.
    - Temperature exposed; scoring wants it low.
    - Max tokens to bound cost. A batch of ten analyses needs room.
    """

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        """
        Send a prompt to the LLM and get a response.

        Raises:
            LLMRateLimitError: quota exhausted or service unavailable (429/503).
                Worth retrying with another key.
            LLMError: any other provider-specific failure.
        """
        ...

    @abstractmethod
    def name(self) -> str:
        """Return provider name for logging."""
        ...


class LLMError(Exception):
    """Raised when an LLM call fails."""
    pass


class LLMRateLimitError(LLMError):
    """Rate limited (429) or temporarily unavailable (503)."""

    def __init__(self, message: str, status: int = 429):
        super().__init__(message)
        self.status = status


def classify_error(prefix: str, exc: Exception) -> LLMError:
    """Map an SDK exception to LLMError or LLMRateLimitError by its status."""
    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    text = str(exc)
    if status == 429 or "429" in text or "RESOURCE_EXHAUSTED" in text:
        return LLMRateLimitError(f"{prefix}: {exc}", status=429)
    if status == 503 or "503" in text:
        return LLMRateLimitError(f"{prefix}: {exc}", status=503)
    return LLMError(f"{prefix}: {exc}")
