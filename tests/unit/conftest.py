"""Shared fixtures for unit tests."""

import asyncio

import pytest

from invoice_ai.extraction.base import GenerativeProvider
from invoice_ai.shared.config import Settings


class ScriptedProvider(GenerativeProvider):
    """Provider that replays scripted outcomes and records every call.

    Each outcome is either a response string or an exception to raise.
    The last outcome repeats once the script is exhausted.
    """

    def __init__(
        self,
        settings: Settings,
        outcomes: list[str | Exception],
        delay: float = 0.0,
    ) -> None:
        super().__init__(settings)
        self.outcomes = outcomes
        self.delay = delay
        self.prompts: list[str] = []
        self.timeouts: list[float] = []

    @property
    def provider_name(self) -> str:
        return "scripted"

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: str, timeout: float) -> str:
        self.prompts.append(prompt)
        self.timeouts.append(timeout)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes[min(len(self.prompts), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def settings() -> Settings:
    """Test settings with no retry backoff and no .env file."""
    return Settings(
        _env_file=None,
        extraction_retry_backoff_seconds=0,
        extraction_timeout_seconds=5,
    )
