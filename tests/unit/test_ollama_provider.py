"""Unit tests for OllamaProvider.

Tests the Ollama-based provider with mocked HTTP calls.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from invoice_ai.extraction.base import (
    ProviderRejectedError,
    ProviderRequestError,
    ProviderTimeoutError,
)
from invoice_ai.extraction.ollama_provider import OllamaProvider
from invoice_ai.shared.config import Settings


@pytest.fixture
def ollama_settings() -> Settings:
    """Create test settings with Ollama provider."""
    return Settings(
        _env_file=None,
        extraction_provider="ollama",
        ollama_base_url="http://localhost:11434",
        ollama_model="qwen2.5:7b",
    )


@pytest.fixture
def provider(ollama_settings: Settings) -> OllamaProvider:
    """Create Ollama provider instance."""
    return OllamaProvider(ollama_settings)


class TestOllamaProviderProperties:
    """Test provider properties and availability."""

    def test_provider_name(self, provider: OllamaProvider) -> None:
        """Provider name should be 'ollama'."""
        assert provider.provider_name == "ollama"

    def test_is_available_when_configured(self, provider: OllamaProvider) -> None:
        assert provider.is_available() is True


class TestOllamaGenerate:
    """Test /api/generate calls."""

    @pytest.mark.asyncio
    async def test_successful_response(self, provider: OllamaProvider) -> None:
        """Should return the response text from Ollama."""
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()
        mock_response.json.return_value = {"response": '{"clientName": "Sarah"}'}

        with patch.object(
            provider._client, "post", AsyncMock(return_value=mock_response)
        ) as mock_post:
            text = await provider.generate("PROMPT", timeout=7)

        assert text == '{"clientName": "Sarah"}'
        kwargs = mock_post.call_args.kwargs
        assert kwargs["json"]["model"] == "qwen2.5:7b"
        assert kwargs["json"]["prompt"] == "PROMPT"
        assert kwargs["json"]["format"] == "json"
        assert kwargs["json"]["stream"] is False
        assert kwargs["timeout"] == 7

    @pytest.mark.asyncio
    async def test_http_error_is_request_error(self, ollama_settings: Settings) -> None:
        """Should classify HTTP status errors as transient request errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="model crashed")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = OllamaProvider(ollama_settings, client=client)

        with pytest.raises(ProviderRequestError) as exc_info:
            await provider.generate("p", timeout=5)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_missing_model_is_rejected(self, ollama_settings: Settings) -> None:
        """Should not treat a 4xx answer as transient."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": "model \"qwen2.5:7b\" not found"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = OllamaProvider(ollama_settings, client=client)

        with pytest.raises(ProviderRejectedError, match="not found") as exc_info:
            await provider.generate("p", timeout=5)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_timeout_is_classified(self, provider: OllamaProvider) -> None:
        with patch.object(
            provider._client, "post", AsyncMock(side_effect=httpx.ReadTimeout("timed out"))
        ):
            with pytest.raises(ProviderTimeoutError):
                await provider.generate("p", timeout=5)

    @pytest.mark.asyncio
    async def test_connection_refused_is_request_error(self, provider: OllamaProvider) -> None:
        with patch.object(
            provider._client,
            "post",
            AsyncMock(side_effect=httpx.ConnectError("Connection refused")),
        ):
            with pytest.raises(ProviderRequestError):
                await provider.generate("p", timeout=5)

    @pytest.mark.asyncio
    async def test_empty_response_is_request_error(self, ollama_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=json.dumps({"response": ""}))

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = OllamaProvider(ollama_settings, client=client)

        with pytest.raises(ProviderRequestError, match="Empty response"):
            await provider.generate("p", timeout=5)
