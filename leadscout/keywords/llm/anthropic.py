"""Anthropic Claude LLM provider."""

from leadscout.keywords.llm.base import LLMProvider, missing_sdk


class AnthropicProvider(LLMProvider):
    """Long-tail keywords from the Anthropic Messages API."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

    def _generate(self, api_key: str | None, prompt: str, model: str, system: str) -> str | None:
        try:
            import anthropic
        except ImportError:
            raise missing_sdk("anthropic", "anthropic") from None

        client = anthropic.Anthropic(api_key=api_key)
        message = client.messages.create(
            model=model,
            max_tokens=self.max_output_tokens,
            temperature=self.temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        # Text blocks only; a reply may also carry tool or thinking blocks.
        parts = [block.text for block in message.content if getattr(block, "type", "") == "text"]
        return "\n".join(parts)
