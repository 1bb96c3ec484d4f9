"""Unit tests for extraction base classes and interfaces.

Tests cover:
- Abstract base class enforcement
- Provider failure attributes
- Default resource cleanup
"""

import pytest

from invoice_ai.extraction.base import (
    GenerativeProvider,
    ProviderFailure,
    ProviderQuotaError,
    ProviderRequestError,
    ProviderTimeoutError,
)
from invoice_ai.shared.config import Settings


class EchoProvider(GenerativeProvider):
    """Minimal concrete provider."""

    async def generate(self, prompt: str, timeout: float) -> str:
        return prompt

    def is_available(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "echo"


def test_generative_provider_is_abstract() -> None:
    """Test that GenerativeProvider cannot be instantiated directly."""
    with pytest.raises(TypeError):
        GenerativeProvider(Settings(_env_file=None))  # type: ignore[abstract]


def test_provider_without_generate_is_abstract() -> None:
    """Test that a subclass must implement generate()."""

    class IncompleteProvider(GenerativeProvider):
        def is_available(self) -> bool:
            return True

        @property
        def provider_name(self) -> str:
            return "incomplete"

    with pytest.raises(TypeError):
        IncompleteProvider(Settings(_env_file=None))  # type: ignore[abstract]


@pytest.mark.asyncio
async def test_concrete_provider_contract() -> None:
    """Test that a complete subclass works and keeps its settings."""
    settings = Settings(_env_file=None)
    provider = EchoProvider(settings)

    assert provider.settings is settings
    assert provider.provider_name == "echo"
    assert await provider.generate("hello", timeout=1) == "hello"
    await provider.aclose()


@pytest.mark.parametrize(
    "error_class", [ProviderTimeoutError, ProviderQuotaError, ProviderRequestError]
)
def test_failures_share_base_class(error_class: type[ProviderFailure]) -> None:
    error = error_class("boom", code="X", status_code=503)

    assert isinstance(error, ProviderFailure)
    assert str(error) == "boom"
    assert error.code == "X"
    assert error.status_code == 503


def test_failure_defaults() -> None:
    error = ProviderRequestError("boom")

    assert error.code is None
    assert error.status_code is None
