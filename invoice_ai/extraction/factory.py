"""Selection of the configured generative provider."""

import logging

from invoice_ai.extraction.base import GenerativeProvider
from invoice_ai.extraction.gemini_provider import GeminiProvider
from invoice_ai.extraction.ollama_provider import OllamaProvider
from invoice_ai.extraction.openai_provider import OpenAIProvider
from invoice_ai.shared.config import Settings

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[GenerativeProvider]] = {
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
    "ollama": OllamaProvider,
}

# Setting to check when a provider reports itself unavailable
_REQUIRED_SETTING = {
    "gemini": "APP_GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "ollama": "APP_OLLAMA_BASE_URL and APP_OLLAMA_MODEL",
}


def create_provider(settings: Settings) -> GenerativeProvider:
    """Instantiate the provider named by ``settings.extraction_provider``.

    An unconfigured provider is still returned so the service can start;
    its calls then fail as rejected requests.

    Raises:
        ValueError: If the name is not in PROVIDERS
    """
    name = settings.extraction_provider
    provider_class = PROVIDERS.get(name)
    if provider_class is None:
        raise ValueError(
            f"Unknown generative provider '{name}'; expected one of: {', '.join(PROVIDERS)}"
        )

    provider = provider_class(settings)
    if provider.is_available():
        logger.info(f"Using generative provider '{name}'")
    else:
        logger.warning(
            f"Generative provider '{name}' is not configured; set {_REQUIRED_SETTING[name]}"
        )
    return provider
