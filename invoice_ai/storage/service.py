"""Persistence collaborators for generated invoices.

The pipeline only ever writes: it hands a computed invoice and the caller's
owner id to a store and gets an identifier back. Reading invoices back is
the job of the surrounding application.

Object storage uses the MinIO Python SDK against any S3-compatible backend:
https://min.io/docs/minio/linux/developers/python/API.html
"""

import io
import logging
import threading
import uuid
from collections import OrderedDict
from typing import Protocol

from minio import Minio
from minio.error import S3Error
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from invoice_ai.extraction.schema import ComputedInvoice
from invoice_ai.shared.config import Settings

logger = logging.getLogger(__name__)


class InvoiceStore(Protocol):
    """Protocol for invoice persistence collaborators."""

    def save(self, invoice: ComputedInvoice, owner_id: str) -> str:
        """Persist an invoice and return its identifier."""
        ...


class InMemoryInvoiceStore:
    """Process-local store for development and tests.

    Holds at most ``max_invoices`` entries; saving past the limit evicts the
    oldest invoice.
    """

    def __init__(self, max_invoices: int = 1000) -> None:
        if max_invoices <= 0:
            raise ValueError("max_invoices must be positive")
        self.max_invoices = max_invoices
        self._invoices: OrderedDict[str, tuple[str, ComputedInvoice]] = OrderedDict()
        self._lock = threading.Lock()

    def save(self, invoice: ComputedInvoice, owner_id: str) -> str:
        invoice_id = str(uuid.uuid4())
        with self._lock:
            self._invoices[invoice_id] = (owner_id, invoice)
            while len(self._invoices) > self.max_invoices:
                evicted, _ = self._invoices.popitem(last=False)
                logger.debug(f"Evicted invoice {evicted} from memory")
        logger.info(f"Stored invoice {invoice_id} in memory")
        return invoice_id

    def __len__(self) -> int:
        return len(self._invoices)

    def get(self, invoice_id: str) -> tuple[str, ComputedInvoice] | None:
        return self._invoices.get(invoice_id)


class ObjectStorageInvoiceStore:
    """S3-compatible invoice store.

    Writes each invoice as JSON to ``{owner_id}/{invoice_id}.json`` in the
    configured bucket, creating the bucket on first use.
    """

    def __init__(self, settings: Settings, client: Minio | None = None) -> None:
        """Initialize object storage store.

        Args:
            settings: Application settings with storage configuration
            client: Optional preconfigured MinIO client
        """
        self.settings = settings
        self._client = client
        self._bucket_ready = False

    def _get_client(self) -> Minio:
        """Get or create MinIO client (lazy initialization).

        Returns:
            Configured Minio client instance

        Raises:
            ValueError: If storage credentials are not configured
        """
        if self._client is None:
            if not self.settings.storage_access_key:
                raise ValueError(
                    "Storage access key not configured. "
                    "Set APP_STORAGE_ACCESS_KEY environment variable."
                )
            if not self.settings.storage_secret_key:
                raise ValueError(
                    "Storage secret key not configured. "
                    "Set APP_STORAGE_SECRET_KEY environment variable."
                )

            self._client = Minio(
                endpoint=self.settings.storage_endpoint,
                access_key=self.settings.storage_access_key,
                secret_key=self.settings.storage_secret_key,
                secure=self.settings.storage_secure,
            )
            logger.info(f"MinIO client initialized for endpoint: {self.settings.storage_endpoint}")

        return self._client

    def is_available(self) -> bool:
        """Check if storage is enabled and credentials are set."""
        if not self.settings.storage_enabled:
            return False
        return bool(self.settings.storage_access_key and self.settings.storage_secret_key)

    def _ensure_bucket(self, client: Minio) -> None:
        if self._bucket_ready:
            return
        bucket = self.settings.storage_bucket
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
            logger.info(f"Created bucket: {bucket}")
        self._bucket_ready = True

    @retry(
        retry=retry_if_exception_type(S3Error),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=1, max=10),
        reraise=True,
    )
    def save(self, invoice: ComputedInvoice, owner_id: str) -> str:
        """Upload the invoice as JSON.

        Args:
            invoice: Computed invoice
            owner_id: Caller identity, used as the object prefix

        Returns:
            Invoice identifier

        Raises:
            S3Error: After all retry attempts are exhausted
            ValueError: If credentials are missing
        """
        client = self._get_client()
        self._ensure_bucket(client)

        invoice_id = str(uuid.uuid4())
        object_name = f"{owner_id}/{invoice_id}.json"
        data = invoice.model_dump_json().encode("utf-8")

        client.put_object(
            bucket_name=self.settings.storage_bucket,
            object_name=object_name,
            data=io.BytesIO(data),
            length=len(data),
            content_type="application/json",
        )
        logger.info(f"Uploaded {object_name} to {self.settings.storage_bucket} ({len(data)} bytes)")
        return invoice_id


def create_invoice_store(settings: Settings) -> InvoiceStore:
    """Pick the object store when enabled and configured, else the bounded in-memory store."""
    object_store = ObjectStorageInvoiceStore(settings)
    if object_store.is_available():
        return object_store
    if settings.storage_enabled:
        logger.warning("Storage enabled but credentials missing; using in-memory invoice store")
    return InMemoryInvoiceStore(max_invoices=settings.memory_store_max_invoices)
