"""
Provider factory. Reads config, returns the right LLMProvider wrapped in
key rotation.
"""

from pathlib import Path

from config.settings import Config
from llm.key_pool import KeyPool, RotatingProvider
from llm.provider import LLMProvider, LLMError


def _builder(config: Config):
    provider = config.llm_provider.lower()

    if provider == "gemini":
        from llm.gemini_provider import GeminiProvider
        return lambda key: GeminiProvider(api_key=key, model=config.gemini_model)
    elif provider == "openai":
        from llm.openai_provider import OpenAIProvider
        return lambda key: OpenAIProvider(api_key=key, model=config.openai_model)
    elif provider == "openrouter":
        from llm.openai_provider import OpenAIProvider, OPENROUTER_BASE_URL
        return lambda key: OpenAIProvider(
            api_key=key,
            model=config.openrouter_model,
            base_url=OPENROUTER_BASE_URL,
            label="openrouter",
        )
    elif provider == "claude":
        from llm.claude_provider import ClaudeProvider
        return lambda key: ClaudeProvider(api_key=key, model=config.anthropic_model)
    else:
        raise LLMError(
            f"Unknown LLM provider: '{provider}'. "
            f"Set SIGNAL_LLM_PROVIDER to 'gemini', 'openai', 'openrouter' or 'claude'."
        )


def create_provider(config: Config, usage_path: Path) -> LLMProvider:
    """
    Create the configured provider. Raises LLMError when the provider is
    unknown or no key is set.
    """
    build = _builder(config)
    keys = config.llm_keys()
    if not keys:
        raise LLMError(f"No API keys set for LLM provider '{config.llm_provider}'")

    pool = KeyPool(keys, usage_path, max_requests_per_key=config.llm_max_requests_per_key)
    return RotatingProvider(pool, build, label=config.llm_provider.lower())
