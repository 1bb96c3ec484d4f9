"""OpenAI-based provider for invoice draft extraction.

Uses the OpenAI chat completions API in JSON mode.
Requires OPENAI_API_KEY environment variable.

The SDK's built-in retries are disabled: retry policy lives in the
extraction client, which must never retry quota errors.
"""

import os

import openai
from openai import AsyncOpenAI

from invoice_ai.extraction.base import (
    GenerativeProvider,
    ProviderQuotaError,
    ProviderRejectedError,
    ProviderRequestError,
    ProviderTimeoutError,
    is_permanent_status,
)
from invoice_ai.shared.config import Settings


class OpenAIProvider(GenerativeProvider):
    """OpenAI provider using a cost-effective chat model (gpt-4o-mini by default)."""

    def __init__(self, settings: Settings) -> None:
        """Initialize OpenAI provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._client: AsyncOpenAI | None = None

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'openai'
        """
        return "openai"

    def is_available(self) -> bool:
        """Check if OpenAI API key is configured.

        Returns:
            True if OPENAI_API_KEY environment variable is set
        """
        return os.getenv("OPENAI_API_KEY") is not None

    def _get_client(self) -> AsyncOpenAI:
        api_key = os.getenv("OPENAI_API_KEY")
        if self._client is None or self._client.api_key != api_key:
            self._client = AsyncOpenAI(api_key=api_key, max_retries=0)
        return self._client

    async def generate(self, prompt: str, timeout: float) -> str:
        """Run one chat completion and return the message content."""
        if not self.is_available():
            raise ProviderRejectedError(
                "OPENAI_API_KEY environment variable not set", code="NOT_CONFIGURED"
            )

        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[
                    {"role": "system", "content": "You are an invoice data extraction assistant."},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0,  # Deterministic output
                timeout=timeout,
            )
        # APITimeoutError subclasses APIConnectionError, so it must come first
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(f"OpenAI request timed out after {timeout}s") from e
        except openai.RateLimitError as e:
            raise ProviderQuotaError(
                f"OpenAI quota exhausted: {e.message}", code=e.code, status_code=e.status_code
            ) from e
        except openai.APIStatusError as e:
            error_class = (
                ProviderRejectedError
                if is_permanent_status(e.status_code)
                else ProviderRequestError
            )
            raise error_class(
                f"OpenAI error {e.status_code}: {e.message}",
                code=e.code,
                status_code=e.status_code,
            ) from e
        except openai.APIConnectionError as e:
            raise ProviderRequestError(f"OpenAI connection error: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise ProviderRequestError("No content in OpenAI response")
        return response.choices[0].message.content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
