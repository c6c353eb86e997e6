"""
Claude (Anthropic) provider. Used when SIGNAL_LLM_PROVIDER=claude.

A scoring batch is only useful as a complete JSON array, so a response cut
off at max_tokens is raised as an error instead of returned.
"""

from llm.provider import LLMProvider, LLMResponse, LLMError, classify_error


class ClaudeProvider(LLMProvider):
    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514"):
        if not api_key:
            raise LLMError("ANTHROPIC_API_KEY not set")
        try:
            import anthropic
        except ImportError:
            raise LLMError("anthropic package not installed: pip install anthropic")
        self._client = anthropic.Anthropic(api_key=api_key)
        self._model = model

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except Exception as e:
            raise classify_error("Claude API error", e) from e

        if response.stop_reason == "max_tokens":
            raise LLMError(f"Claude response truncated at {max_tokens} tokens")

        # Only text blocks carry the analyses
        parts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
        return LLMResponse(
            text="".join(parts),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model or self._model,
        )

    def name(self) -> str:
        return f"claude/{self._model}"
