"""Invoice generation pipeline.

Sequences normalize -> extract -> parse -> validate -> calculate, stops at
the first failure and reports everything through one tagged result type.
A successful invoice is handed to the persistence collaborator, if any.

The pipeline holds no per-request state; one instance serves concurrent
requests.
"""

import asyncio
import logging
import time

from prometheus_client import Counter, Histogram
from pydantic import BaseModel

from invoice_ai.extraction.base import GenerativeProvider
from invoice_ai.extraction.client import ExtractionClient
from invoice_ai.extraction.schema import ComputedInvoice, InvoiceDraft
from invoice_ai.pipeline.calculator import compute_invoice, rounding_unit_for
from invoice_ai.pipeline.errors import (
    CalculationError,
    ErrorKind,
    PipelineCancelledError,
    PipelineError,
)
from invoice_ai.pipeline.normalizer import normalize_text
from invoice_ai.pipeline.parser import parse_response
from invoice_ai.pipeline.validator import InvoiceValidator
from invoice_ai.shared.config import Settings
from invoice_ai.storage.service import InvoiceStore

logger = logging.getLogger(__name__)

invoice_generations_total = Counter(
    "invoice_generations_total",
    "Total invoice generation requests by outcome",
    ["outcome"],  # success, cancelled, or the error kind
)

invoice_generation_duration_seconds = Histogram(
    "invoice_generation_duration_seconds",
    "End-to-end invoice generation duration in seconds",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0),
)


class PipelineFailure(BaseModel):
    """Classified failure of a pipeline run.

    Attributes:
        kind: Failure kind
        subkind: Finer classification, e.g. 'ParseError' or 'NoValidItems'
        message: User-facing message
        retryable: Whether resubmitting the same input may succeed
        details: Field-level detail lines
    """

    kind: ErrorKind
    subkind: str | None = None
    message: str
    retryable: bool
    details: list[str] = []

    @classmethod
    def from_error(cls, error: PipelineError) -> "PipelineFailure":
        return cls(
            kind=error.kind,
            subkind=error.subkind,
            message=error.message,
            retryable=error.retryable,
            details=error.details,
        )


class PipelineResult(BaseModel):
    """Tagged result of a pipeline run: an invoice or a failure, never both.

    Attributes:
        success: Whether an invoice was produced
        invoice: Computed invoice (success only)
        invoice_id: Identifier assigned by the store, if the invoice was persisted
        error: Failure description (failure only)
        warnings: Non-fatal validation warnings (success only)
    """

    success: bool
    invoice: ComputedInvoice | None = None
    invoice_id: str | None = None
    error: PipelineFailure | None = None
    warnings: list[str] = []

    @classmethod
    def ok(
        cls, invoice: ComputedInvoice, warnings: list[str], invoice_id: str | None = None
    ) -> "PipelineResult":
        return cls(success=True, invoice=invoice, invoice_id=invoice_id, warnings=warnings)

    @classmethod
    def failed(cls, error: PipelineError) -> "PipelineResult":
        return cls(success=False, error=PipelineFailure.from_error(error))


class InvoicePipeline:
    """Turns pasted text into a computed invoice."""

    def __init__(
        self,
        settings: Settings,
        provider: GenerativeProvider,
        store: InvoiceStore | None = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            settings: Application settings
            provider: Generative provider used for extraction
            store: Persistence collaborator for successful invoices
        """
        self.settings = settings
        self.provider = provider
        self.store = store
        self.extraction_client = ExtractionClient(provider, settings)
        self.validator = InvoiceValidator(settings)
        self.rounding_unit = rounding_unit_for(settings.rounding_decimal_places)

    async def run(
        self,
        raw_text: str,
        owner_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineResult:
        """Run the full pipeline for one request.

        Args:
            raw_text: Text pasted by the user
            owner_id: Caller identity, passed through to the store uninterpreted
            cancel_event: Set by the caller to abort; the run then resolves as Cancelled

        Returns:
            PipelineResult with either the computed invoice or a classified failure
        """
        start = time.perf_counter()
        try:
            invoice, warnings = await self._run_stages(raw_text, cancel_event)
        except PipelineError as e:
            outcome = "cancelled" if e.kind is ErrorKind.CANCELLED else e.kind.value
            invoice_generations_total.labels(outcome=outcome).inc()
            if e.kind is ErrorKind.CANCELLED:
                logger.info("Invoice generation cancelled by caller")
            else:
                logger.warning(f"Invoice generation failed: {e.kind} ({e.subkind}): {e.message}")
            return PipelineResult.failed(e)
        finally:
            invoice_generation_duration_seconds.observe(time.perf_counter() - start)

        invoice_id = await self._persist(invoice, owner_id)
        invoice_generations_total.labels(outcome="success").inc()
        return PipelineResult.ok(invoice, warnings, invoice_id)

    def recalculate(self, draft: InvoiceDraft) -> ComputedInvoice:
        """Compute totals for an edited draft.

        Raises:
            CalculationError: If the draft violates invoice invariants
        """
        return compute_invoice(draft, self.rounding_unit)

    async def _run_stages(
        self, raw_text: str, cancel_event: asyncio.Event | None
    ) -> tuple[ComputedInvoice, list[str]]:
        text = normalize_text(raw_text, self.settings.max_input_chars)
        logger.info(f"Generating invoice from {len(text)} characters of text")

        response_text = await self._extract(text, cancel_event)
        tree = parse_response(response_text)
        validation = self.validator.validate(tree)

        try:
            invoice = compute_invoice(validation.draft, self.rounding_unit)
        except CalculationError:
            logger.exception("Calculation failed on a validated draft")
            raise

        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelledError("Invoice generation was cancelled.")
        return invoice, validation.warnings

    async def _extract(self, text: str, cancel_event: asyncio.Event | None) -> str:
        """Run the provider call, racing it against the cancellation signal."""
        if cancel_event is None:
            return await self.extraction_client.extract(text)
        if cancel_event.is_set():
            raise PipelineCancelledError("Invoice generation was cancelled.")

        extract_task = asyncio.create_task(self.extraction_client.extract(text))
        cancel_task = asyncio.create_task(cancel_event.wait())
        try:
            await asyncio.wait({extract_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (extract_task, cancel_task):
                task.cancel()
            await asyncio.gather(extract_task, cancel_task, return_exceptions=True)

        if cancel_event.is_set():
            raise PipelineCancelledError("Invoice generation was cancelled.")
        return extract_task.result()

    async def _persist(self, invoice: ComputedInvoice, owner_id: str) -> str | None:
        """Hand the invoice to the store; a storage failure does not fail the request."""
        if self.store is None:
            return None
        try:
            return await asyncio.to_thread(self.store.save, invoice, owner_id)
        except Exception as e:
            logger.error(f"Failed to persist invoice for owner {owner_id}: {e}")
            return None
