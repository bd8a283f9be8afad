"""OpenAI LLM provider."""

from leadscout.keywords.llm.base import LLMProvider, missing_sdk


class OpenAIProvider(LLMProvider):
    """Long-tail keywords from the OpenAI chat completions API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    def _generate(self, api_key: str | None, prompt: str, model: str, system: str) -> str | None:
        try:
            import openai
        except ImportError:
            raise missing_sdk("openai", "openai") from None

        client = openai.OpenAI(api_key=api_key)
        response = client.chat.completions.create(
            model=model,
            max_tokens=self.max_output_tokens,
            temperature=self.temperature,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        )
        if not response.choices:
            return None
        return response.choices[0].message.content  # type: ignore[no-any-return]
