"""Gemini-based provider using the Google Generative Language REST API.

Calls ``models/{model}:generateContent`` over httpx and asks for a JSON
response. Quota exhaustion is recognized from the structured error status
(RESOURCE_EXHAUSTED) or HTTP 429, never from free-form message text.

See: https://ai.google.dev/api/generate-content
"""

from typing import Any

import httpx

from invoice_ai.extraction.base import (
    GenerativeProvider,
    ProviderQuotaError,
    ProviderRejectedError,
    ProviderRequestError,
    ProviderTimeoutError,
    is_permanent_status,
)
from invoice_ai.shared.config import Settings

QUOTA_STATUS = "RESOURCE_EXHAUSTED"


class GeminiProvider(GenerativeProvider):
    """Gemini provider for hosted LLM inference.

    Requires APP_GEMINI_API_KEY.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        """Initialize Gemini provider.

        Args:
            settings: Application settings
            client: Optional preconfigured HTTP client
        """
        super().__init__(settings)
        self._base_url = settings.gemini_base_url.rstrip("/")
        self._model = settings.gemini_model
        self._client = client or httpx.AsyncClient()

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'gemini'
        """
        return "gemini"

    def is_available(self) -> bool:
        """Check if the Gemini API key is configured.

        Returns:
            True if APP_GEMINI_API_KEY is set
        """
        return bool(self.settings.gemini_api_key)

    async def generate(self, prompt: str, timeout: float) -> str:
        """Call generateContent once and return the model text."""
        if not self.is_available():
            raise ProviderRejectedError("Gemini API key not configured", code="NOT_CONFIGURED")

        try:
            response = await self._client.post(
                f"{self._base_url}/models/{self._model}:generateContent",
                headers={"x-goog-api-key": self.settings.gemini_api_key},
                json={
                    "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                    "generationConfig": {
                        "temperature": 0,  # Deterministic output
                        "responseMimeType": "application/json",
                    },
                },
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Gemini request timed out after {timeout}s") from e
        except httpx.TransportError as e:
            raise ProviderRequestError(f"Gemini transport error: {e}") from e

        if response.status_code >= 400:
            self._raise_for_error(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderRequestError("Gemini returned a non-JSON body") from e
        return self._extract_text(payload)

    def _raise_for_error(self, response: httpx.Response) -> None:
        """Classify an error response into a provider failure.

        Raises:
            ProviderQuotaError: On HTTP 429 or RESOURCE_EXHAUSTED status
            ProviderRejectedError: On other 4xx statuses (bad key, invalid argument)
            ProviderRequestError: On any other error status
        """
        error: dict[str, Any] = {}
        try:
            body = response.json()
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                error = body["error"]
        except ValueError:
            pass

        status = error.get("status")
        message = error.get("message") or response.text[:200]
        if response.status_code == 429 or status == QUOTA_STATUS:
            raise ProviderQuotaError(
                f"Gemini quota exhausted: {message}",
                code=status or QUOTA_STATUS,
                status_code=response.status_code,
            )
        error_class = (
            ProviderRejectedError
            if is_permanent_status(response.status_code)
            else ProviderRequestError
        )
        raise error_class(
            f"Gemini error {response.status_code}: {message}",
            code=status,
            status_code=response.status_code,
        )

    @staticmethod
    def _extract_text(payload: dict[str, Any]) -> str:
        """Join the text parts of the first candidate.

        Raises:
            ProviderRequestError: If the response carries no candidate text
        """
        candidates = payload.get("candidates") or []
        if not candidates:
            reason = (payload.get("promptFeedback") or {}).get("blockReason")
            raise ProviderRequestError(
                f"Gemini returned no candidates (blockReason={reason})", code=reason
            )
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text:
            raise ProviderRequestError("Gemini candidate contained no text")
        return text

    async def aclose(self) -> None:
        await self._client.aclose()
