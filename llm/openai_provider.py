"""
OpenAI-compatible chat completions. Serves two provider names:

- openai:     api.openai.com
- openrouter: https://openrouter.ai/api/v1, same SDK with a custom base_url

Keys come from the rotating pool, one client per key.
"""

from llm.provider import LLMProvider, LLMResponse, LLMError, classify_error

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# OpenRouter attributes requests by app title
APP_HEADERS = {"X-Title": "early-signal"}


class OpenAIProvider(LLMProvider):
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", base_url: str | None = None, label: str = "openai"):
        if not api_key:
            raise LLMError(f"{label.upper()}_API_KEY not set")
        try:
            import openai
        except ImportError:
            raise LLMError("openai package not installed: pip install openai")

        kwargs = {"api_key": api_key}
        if base_url:
            kwargs["base_url"] = base_url
            kwargs["default_headers"] = APP_HEADERS
        self._client = openai.OpenAI(**kwargs)
        self._model = model
        self._label = label

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except Exception as e:
            raise classify_error(f"{self._label} API error", e) from e

        if not response.choices:
            raise LLMError(f"{self._label} returned no choices")
        choice = response.choices[0]
        if choice.finish_reason == "length":
            raise LLMError(f"{self._label} response truncated at {max_tokens} tokens")

        usage = response.usage
        return LLMResponse(
            text=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self._model,
        )

    def name(self) -> str:
        return f"{self._label}/{self._model}"
