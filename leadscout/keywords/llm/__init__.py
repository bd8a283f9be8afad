"""LLM provider registry with lazy loading.

Usage:
    from leadscout.keywords.llm import get_provider

    provider = get_provider("gemini")
    raw = provider.complete(prompt)
"""

import importlib

from leadscout.keywords.llm.base import SYSTEM_PROMPT, LLMProvider

__all__ = ["SYSTEM_PROMPT", "LLMProvider", "available_providers", "get_provider"]

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "anthropic": ("leadscout.keywords.llm.anthropic", "AnthropicProvider"),
    "openai": ("leadscout.keywords.llm.openai", "OpenAIProvider"),
    "gemini": ("leadscout.keywords.llm.gemini", "GeminiProvider"),
}


def get_provider(name: str) -> LLMProvider:
    """Instantiate and return an LLM provider by name.

    Args:
        name: Provider identifier (anthropic, openai, gemini).

    Returns:
        An LLMProvider instance.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown LLM provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls()  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
