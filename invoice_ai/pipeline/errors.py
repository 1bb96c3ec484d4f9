"""Error taxonomy for the invoice generation pipeline.

Every stage raises a subclass of PipelineError. The orchestrator turns it into
a tagged PipelineResult, so callers only ever see one failure shape.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Failure kinds surfaced to callers."""

    INPUT_EMPTY = "InputEmpty"
    INPUT_TOO_LARGE = "InputTooLarge"
    TIMEOUT = "Timeout"
    QUOTA_EXCEEDED = "QuotaExceeded"
    PROVIDER_ERROR = "ProviderError"
    EXTRACTION_FAILED = "ExtractionFailed"
    VALIDATION_ERROR = "ValidationError"
    CALCULATION_ERROR = "CalculationError"
    CANCELLED = "Cancelled"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.TIMEOUT, ErrorKind.PROVIDER_ERROR, ErrorKind.EXTRACTION_FAILED}
)

QUOTA_MESSAGE = (
    "AI is temporarily unavailable (quota exceeded). "
    "Try again in a few minutes, or create the invoice manually."
)


class PipelineError(Exception):
    """Base class for classified pipeline failures.

    Attributes:
        kind: Failure kind from the public taxonomy
        subkind: Optional finer classification (e.g. 'ParseError', 'NoValidItems')
        message: Human-readable description safe to show to the user
        details: Field-level detail lines
    """

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        subkind: str | None = None,
        details: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.subkind = subkind
        self.details = details or []

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class InputEmptyError(PipelineError):
    kind = ErrorKind.INPUT_EMPTY


class InputTooLargeError(PipelineError):
    kind = ErrorKind.INPUT_TOO_LARGE


class ExtractionTimeoutError(PipelineError):
    kind = ErrorKind.TIMEOUT


class QuotaExceededError(PipelineError):
    kind = ErrorKind.QUOTA_EXCEEDED


class ProviderError(PipelineError):
    kind = ErrorKind.PROVIDER_ERROR


class ExtractionFailedError(PipelineError):
    kind = ErrorKind.EXTRACTION_FAILED


class InvoiceValidationError(PipelineError):
    kind = ErrorKind.VALIDATION_ERROR


class CalculationError(PipelineError):
    kind = ErrorKind.CALCULATION_ERROR


class PipelineCancelledError(PipelineError):
    kind = ErrorKind.CANCELLED
