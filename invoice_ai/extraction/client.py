"""Extraction client: one prompt, one provider, a bounded retry policy.

Retry policy:
- timeout: surfaced immediately, no retry
- quota / rate limit: surfaced immediately, never retried (each call costs money)
- permanent rejections (bad key, invalid request): surfaced immediately, no retry
- other provider faults: one retry after a short fixed backoff

Attempts run strictly one after another.
"""

import asyncio
import logging
import re
import time

from prometheus_client import Counter, Histogram
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from invoice_ai.extraction.base import (
    GenerativeProvider,
    ProviderFailure,
    ProviderQuotaError,
    ProviderRejectedError,
    ProviderRequestError,
    ProviderTimeoutError,
)
from invoice_ai.extraction.prompt import build_extraction_prompt
from invoice_ai.pipeline.errors import (
    QUOTA_MESSAGE,
    ExtractionTimeoutError,
    ProviderError,
    QuotaExceededError,
)
from invoice_ai.shared.config import Settings

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2

# Fallback only, for failures the adapter could not classify itself
_QUOTA_TEXT = re.compile(r"quota|exhausted|resource_exhausted", re.IGNORECASE)

extraction_attempts_total = Counter(
    "extraction_attempts_total",
    "Total provider calls made for invoice extraction",
    ["provider", "outcome"],  # success, timeout, quota, rejected, error
)

extraction_duration_seconds = Histogram(
    "extraction_duration_seconds",
    "Provider call duration in seconds, retries included",
    ["provider"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0),
)


def looks_like_quota_error(text: str) -> bool:
    """Check free-form error text for quota exhaustion markers."""
    return bool(_QUOTA_TEXT.search(text))


def classify_failure(error: Exception) -> ProviderFailure:
    """Map an arbitrary adapter exception onto a provider failure.

    Structured failures are kept as they are, except request errors without
    a structured code whose text reports quota exhaustion.
    """
    if isinstance(error, ProviderQuotaError | ProviderTimeoutError | ProviderRejectedError):
        return error
    if isinstance(error, ProviderRequestError) and error.code is not None:
        return error
    if isinstance(error, TimeoutError):
        return ProviderTimeoutError(str(error) or "Provider call timed out")
    if looks_like_quota_error(str(error)):
        return ProviderQuotaError(str(error), code="RESOURCE_EXHAUSTED")
    if isinstance(error, ProviderRequestError):
        return error
    return ProviderRequestError(f"{type(error).__name__}: {error}")


class ExtractionClient:
    """Invokes a generative provider with the extraction prompt."""

    def __init__(self, provider: GenerativeProvider, settings: Settings) -> None:
        """Initialize client.

        Args:
            provider: Generative provider to call
            settings: Application settings (timeout and backoff)
        """
        self.provider = provider
        self.settings = settings

    async def extract(self, text: str) -> str:
        """Ask the provider for an invoice draft of the given text.

        Args:
            text: Normalized user text

        Returns:
            Raw textual response of the provider

        Raises:
            ExtractionTimeoutError: Provider exceeded the deadline
            QuotaExceededError: Provider quota or rate limit exhausted
            ProviderError: Provider failed twice in a row
        """
        prompt = build_extraction_prompt(text)
        provider = self.provider.provider_name
        start = time.perf_counter()

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(ProviderRequestError),
            wait=wait_fixed(self.settings.extraction_retry_backoff_seconds),
            stop=stop_after_attempt(MAX_ATTEMPTS),
            before=self._log_attempt,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            return await retrying(self._call_once, prompt)
        except ProviderTimeoutError as e:
            raise ExtractionTimeoutError(
                "The AI service took too long to respond. Please try again.",
                details=[str(e)],
            ) from e
        except ProviderQuotaError as e:
            raise QuotaExceededError(QUOTA_MESSAGE, details=[str(e)]) from e
        except ProviderRejectedError as e:
            raise ProviderError(
                "The AI service rejected the request. Check the provider configuration.",
                subkind="Rejected",
                details=[str(e)],
            ) from e
        except ProviderRequestError as e:
            raise ProviderError(
                "The AI service is unavailable right now. Please try again.",
                details=[str(e)],
            ) from e
        finally:
            extraction_duration_seconds.labels(provider=provider).observe(
                time.perf_counter() - start
            )

    async def _call_once(self, prompt: str) -> str:
        timeout = self.settings.extraction_timeout_seconds
        provider = self.provider.provider_name

        try:
            result = await asyncio.wait_for(self.provider.generate(prompt, timeout), timeout)
        except Exception as e:
            failure = classify_failure(e)
            outcome = {
                ProviderTimeoutError: "timeout",
                ProviderQuotaError: "quota",
                ProviderRejectedError: "rejected",
            }.get(type(failure), "error")
            extraction_attempts_total.labels(provider=provider, outcome=outcome).inc()
            logger.warning(f"Provider '{provider}' failed ({outcome}): {failure}")
            if failure is e:
                raise
            raise failure from e

        extraction_attempts_total.labels(provider=provider, outcome="success").inc()
        return result

    def _log_attempt(self, retry_state: RetryCallState) -> None:
        logger.info(
            f"Calling provider '{self.provider.provider_name}' "
            f"(attempt {retry_state.attempt_number} of {MAX_ATTEMPTS})"
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        logger.info(
            f"Retrying provider call after transient error "
            f"(attempt {retry_state.attempt_number} of {MAX_ATTEMPTS})"
        )
