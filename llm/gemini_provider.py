"""
Gemini (Google) LLM provider implementation. Default scoring provider.
"""

from llm.provider import LLMProvider, LLMResponse, LLMError, classify_error


class GeminiProvider(LLMProvider):
    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", timeout: float = 120.0):
        if not api_key:
            raise LLMError("GEMINI_API_KEY not set")
        try:
            import google.generativeai as genai
        except ImportError:
            raise LLMError("google-generativeai package not installed: pip install google-generativeai")
        self._genai = genai
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> LLMResponse:
        try:
            # configure() is process-global; several keys may share the process
            self._genai.configure(api_key=self._api_key)
            model = self._genai.GenerativeModel(self._model, system_instruction=system_prompt)
            response = model.generate_content(
                user_prompt,
                generation_config={"temperature": temperature, "max_output_tokens": max_tokens},
                request_options={"timeout": self._timeout},
            )
            candidates = getattr(response, "candidates", None) or []
            finish = getattr(candidates[0].finish_reason, "name", "") if candidates else ""
            text = response.text or ""
        except Exception as e:
            raise classify_error("Gemini API error", e) from e

        if finish == "MAX_TOKENS":
            raise LLMError(f"Gemini response truncated at {max_tokens} tokens")

        usage = getattr(response, "usage_metadata", None)
        return LLMResponse(
            text=text,
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            model=self._model,
        )

    def name(self) -> str:
        return f"gemini/{self._model}"
