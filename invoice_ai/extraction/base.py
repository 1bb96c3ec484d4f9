"""Abstract base class for generative text providers.

Enables switching between different providers (Gemini, OpenAI, Ollama)
while keeping one call contract: a prompt and a deadline in, text out.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python

Providers classify their own failures into the exceptions below, so the
extraction client never has to inspect provider-specific error types.
"""

from abc import ABC, abstractmethod

from invoice_ai.shared.config import Settings


class ProviderFailure(Exception):
    """Base class for classified provider failures.

    Attributes:
        code: Structured error code reported by the provider (e.g. 'RESOURCE_EXHAUSTED')
        status_code: HTTP status code if the failure came from an HTTP response
    """

    def __init__(
        self, message: str, code: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class ProviderTimeoutError(ProviderFailure):
    """Provider did not answer before the deadline."""


class ProviderQuotaError(ProviderFailure):
    """Provider quota, billing or rate limit is exhausted."""


class ProviderRequestError(ProviderFailure):
    """Transient transport or service fault (5xx, connection reset, malformed reply)."""


class ProviderRejectedError(ProviderFailure):
    """Request the provider will never accept as sent (bad key, invalid argument)."""


def is_permanent_status(status_code: int) -> bool:
    """Check whether an HTTP error status will fail again on an identical request.

    4xx responses are permanent except 408 (request timeout) and 429 (rate limit).
    """
    return 400 <= status_code < 500 and status_code not in (408, 429)


class GenerativeProvider(ABC):
    """Abstract base class for generative text providers.

    Example implementations:
    - GeminiProvider: Google Generative Language API
    - OpenAIProvider: OpenAI chat completions
    - OllamaProvider: self-hosted Ollama server
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    async def generate(self, prompt: str, timeout: float) -> str:
        """Send one prompt to the provider and return its raw text answer.

        Args:
            prompt: Full extraction prompt
            timeout: Deadline for the call in seconds

        Returns:
            Raw text produced by the model

        Raises:
            ProviderTimeoutError: If the deadline is exceeded
            ProviderQuotaError: If quota or rate limits are exhausted
            ProviderRejectedError: If the provider refuses the request permanently
            ProviderRequestError: On any other provider or transport fault
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is configured (API key, server URL).

        Returns:
            True if provider can be used, False otherwise
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'gemini', 'openai')
        """

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
