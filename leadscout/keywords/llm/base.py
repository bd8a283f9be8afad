"""Abstract base class for LLM providers."""

import logging
import os
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an SEO keyword researcher. For each core keyword you are given, "
    "suggest related long-tail search queries with commercial intent, written "
    "in the same language as the keyword.\n\n"
    "Output ONLY the keywords, one per line, with no numbering, bullets, "
    "prefixes or explanation. Avoid duplicates and near-duplicates."
)


def missing_sdk(package: str, extra: str) -> ImportError:
    """Build the error raised when a provider's optional SDK is not installed."""
    msg = (
        f"{package} is required for long-tail keyword generation. "
        f"Install with: pip install 'leadscout[{extra}]'"
    )
    return ImportError(msg)


class LLMProvider(ABC):
    """Base class that every LLM provider must implement.

    Subclasses only talk to their SDK in ``_generate``; key lookup, defaults
    and response cleanup live in ``complete``.
    """

    # Keyword brainstorming wants some variety, and replies are short lists.
    temperature: float = 0.7
    max_output_tokens: int = 1024

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'gemini')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    def api_key(self) -> str | None:
        """Read the API key from the environment.

        Raises:
            ValueError: If the provider needs a key and none is set.
        """
        if self.env_var is None:
            return None
        key = os.environ.get(self.env_var)
        if not key:
            msg = (
                f"{self.env_var} environment variable is required "
                f"for {self.provider_id} keyword generation"
            )
            raise ValueError(msg)
        return key

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        """Send a prompt to the LLM and return raw response text.

        Args:
            prompt: User message listing the core keywords.
            model: Override the provider's default model. None uses default.
            system: Override the system prompt. None falls back to SYSTEM_PROMPT.

        Returns:
            Raw text response from the LLM (one keyword per line expected),
            stripped of surrounding whitespace. An empty reply becomes "".
        """
        api_key = self.api_key()
        use_model = model or self.default_model
        use_system = system if system is not None else SYSTEM_PROMPT
        logger.info(
            "Requesting long-tail keywords from %s (%s, %d prompt chars)",
            self.provider_id, use_model, len(prompt),
        )
        return (self._generate(api_key, prompt, use_model, use_system) or "").strip()

    @abstractmethod
    def _generate(self, api_key: str | None, prompt: str, model: str, system: str) -> str | None:
        """Make the SDK call; may return None when the model sends no text."""
