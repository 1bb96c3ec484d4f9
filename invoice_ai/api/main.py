"""FastAPI application for AI invoice generation.

Endpoints:
- Health and readiness checks for Kubernetes
- Invoice generation from pasted text
- Recalculation of user-edited drafts
- Prometheus metrics for monitoring

Identity is resolved upstream; the caller's owner id arrives in the
X-Owner-Id header and is passed through uninterpreted.

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from invoice_ai.api import metrics
from invoice_ai.extraction.factory import create_provider
from invoice_ai.extraction.schema import ComputedInvoice, InvoiceDraft
from invoice_ai.pipeline.errors import CalculationError, ErrorKind
from invoice_ai.pipeline.orchestrator import InvoicePipeline, PipelineResult
from invoice_ai.shared.config import get_settings
from invoice_ai.storage.service import create_invoice_store

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

provider = create_provider(settings)
invoice_store = create_invoice_store(settings)
pipeline = InvoicePipeline(settings, provider, invoice_store)

STATUS_BY_KIND = {
    ErrorKind.INPUT_EMPTY: 400,
    ErrorKind.INPUT_TOO_LARGE: 413,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.PROVIDER_ERROR: 502,
    ErrorKind.EXTRACTION_FAILED: 502,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.CALCULATION_ERROR: 500,
    ErrorKind.CANCELLED: 499,  # Client closed request (nginx convention)
}

DISCONNECT_POLL_SECONDS = 0.5


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Close provider connections on shutdown."""
    yield
    await provider.aclose()


app = FastAPI(
    title="AI Invoice Generator",
    description="Turns free-form work descriptions into computed invoices",
    version=settings.service_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str
    provider: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool


class GenerateRequest(BaseModel):
    """Invoice generation request."""

    text: str


async def _cancel_on_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    """Set the cancellation signal once the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling invoice generation")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe.

    Returns:
        Health status information
    """
    return HealthResponse(
        status="healthy",
        version=settings.service_version,
        service=settings.service_name,
        provider=provider.provider_name,
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe.

    Ready once the configured provider has its credentials.

    Returns:
        Readiness status
    """
    return ReadinessResponse(ready=provider.is_available())


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint.

    Returns:
        Prometheus metrics in text format
    """
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post("/api/v1/invoices/generate", response_model=PipelineResult, tags=["Invoices"])
async def generate_invoice(
    body: GenerateRequest,
    request: Request,
    response: Response,
    owner_id: str | None = Header(None, alias="X-Owner-Id"),
) -> PipelineResult:
    """Generate an invoice from free-form text.

    ## Usage Example

    ```bash
    curl -X POST "http://localhost:8000/api/v1/invoices/generate" \\
      -H "X-Owner-Id: user_123" -H "Content-Type: application/json" \\
      -d '{"text": "Sarah wants logo design for $120, 3 options"}'
    ```

    ## Error Handling

    Failures return the same body shape with `success: false` and an `error`
    object (`kind`, `message`, `retryable`). HTTP status follows the kind:
    400 InputEmpty, 413 InputTooLarge, 429 QuotaExceeded, 502 ProviderError /
    ExtractionFailed, 504 Timeout, 422 ValidationError, 500 CalculationError,
    499 Cancelled (client disconnected).

    Args:
        body: Request with the pasted text
        owner_id: Caller identity from the identity layer

    Returns:
        Pipeline result with the computed invoice or a classified failure
    """
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Owner-Id header"
        )

    metrics.generation_input_chars.observe(len(body.text))

    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, cancel_event))
    try:
        result = await pipeline.run(body.text, owner_id, cancel_event)
    finally:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)

    if result.error is not None:
        response.status_code = STATUS_BY_KIND[result.error.kind]
    return result


@app.post("/api/v1/invoices/calculate", response_model=ComputedInvoice, tags=["Invoices"])
def calculate_invoice(draft: InvoiceDraft) -> ComputedInvoice:
    """Recompute totals for an edited draft.

    The submitted draft is not modified; a new computed invoice is returned.

    Raises:
        HTTPException: 422 if the draft violates invoice invariants
    """
    try:
        return pipeline.recalculate(draft)
    except CalculationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": e.message, "details": e.details},
        ) from e
