"""Ollama-based provider for self-hosted LLM inference.

Uses a local Ollama server for draft extraction, so pasted text never
leaves the premises.

Requires Ollama server running on localhost:11434.
See: https://ollama.ai/
"""

import httpx

from invoice_ai.extraction.base import (
    GenerativeProvider,
    ProviderRejectedError,
    ProviderRequestError,
    ProviderTimeoutError,
    is_permanent_status,
)
from invoice_ai.shared.config import Settings


class OllamaProvider(GenerativeProvider):
    """Ollama provider for self-hosted LLM inference.

    Supports models like Qwen2.5, Llama3, Mistral.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        """Initialize Ollama provider.

        Args:
            settings: Application settings
            client: Optional preconfigured HTTP client
        """
        super().__init__(settings)
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_model
        self._client = client or httpx.AsyncClient()

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'ollama'
        """
        return "ollama"

    def is_available(self) -> bool:
        """Check if an Ollama server URL and model are configured.

        Reachability is only known at call time; the server is self-hosted.

        Returns:
            True if base URL and model are set
        """
        return bool(self._base_url and self._model)

    async def generate(self, prompt: str, timeout: float) -> str:
        """Call /api/generate once and return the response text."""
        try:
            response = await self._client.post(
                f"{self._base_url}/api/generate",
                json={
                    "model": self._model,
                    "prompt": prompt,
                    "stream": False,
                    "format": "json",
                    "options": {
                        "temperature": 0,  # Deterministic output
                        "num_predict": 1024,  # Max tokens
                    },
                },
                timeout=timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Ollama request timed out after {timeout}s") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error_class = (
                ProviderRejectedError if is_permanent_status(status_code) else ProviderRequestError
            )
            raise error_class(
                f"Ollama error {status_code}: {e.response.text[:200]}",
                status_code=status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderRequestError(f"Ollama transport error: {e}") from e

        try:
            result = response.json().get("response", "")
        except ValueError as e:
            raise ProviderRequestError("Ollama returned a non-JSON body") from e
        if not isinstance(result, str) or not result:
            raise ProviderRequestError("Empty response from Ollama")
        return result

    async def aclose(self) -> None:
        await self._client.aclose()
