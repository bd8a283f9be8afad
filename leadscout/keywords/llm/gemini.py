"""Google Gemini LLM provider (google-genai SDK)."""

from leadscout.keywords.llm.base import LLMProvider, missing_sdk


class GeminiProvider(LLMProvider):
    """Long-tail keywords from the Gemini API (the default provider)."""

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return "gemini-2.0-flash"

    @property
    def env_var(self) -> str:
        return "GEMINI_API_KEY"

    def _generate(self, api_key: str | None, prompt: str, model: str, system: str) -> str | None:
        try:
            from google import genai
            from google.genai import types as genai_types
        except ImportError:
            raise missing_sdk("google-genai", "gemini") from None

        client = genai.Client(api_key=api_key)
        response = client.models.generate_content(
            model=model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            ),
        )
        return response.text  # type: ignore[no-any-return]
