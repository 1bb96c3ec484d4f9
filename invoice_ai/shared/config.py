"""Shared configuration management for the invoice generator.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from decimal import Decimal
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="ai-invoice-generator",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        description="Frontend origins allowed to call the API with credentials",
    )

    # Input limits
    max_input_chars: int = Field(
        default=20000,
        gt=0,
        description="Maximum length of normalized input text",
    )

    # Extraction provider configuration
    extraction_provider: Literal["gemini", "openai", "ollama"] = Field(
        default="gemini",
        description="Extraction provider: gemini (Google API), openai (cloud API), ollama (self-hosted)",
    )
    extraction_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Deadline for a single provider call",
    )
    extraction_retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Fixed wait before the single retry on a transient provider error",
    )

    # Gemini configuration (for extraction_provider="gemini")
    gemini_api_key: str = Field(
        default="",
        description="Google Generative Language API key (use env var APP_GEMINI_API_KEY)",
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used for extraction",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )

    # OpenAI configuration (for extraction_provider="openai", key from OPENAI_API_KEY)
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI chat model used for extraction",
    )

    # Ollama configuration (for extraction_provider="ollama")
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )
    ollama_model: str = Field(
        default="qwen2.5:7b",
        description="Ollama model to use for extraction (e.g., qwen2.5:7b, llama3.1:8b)",
    )

    # Invoice defaults
    default_tax_rate_percent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Tax rate applied when the extracted one is missing or invalid",
    )
    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency code (ISO 4217) used when none is extracted",
    )
    default_client_name: str = Field(
        default="Unknown Client",
        min_length=1,
        description="Placeholder client name when none is extracted",
    )
    rounding_decimal_places: int = Field(
        default=2,
        ge=0,
        le=6,
        description="Currency minor unit as decimal places (2 = cents)",
    )

    # Storage configuration (S3-compatible object storage)
    storage_enabled: bool = Field(
        default=False,
        description="Persist generated invoices in S3-compatible storage (MinIO)",
    )
    storage_endpoint: str = Field(
        default="localhost:9000",
        description="S3-compatible storage endpoint (host:port)",
    )
    storage_access_key: str = Field(
        default="",
        description="Storage access key (use env var APP_STORAGE_ACCESS_KEY)",
    )
    storage_secret_key: str = Field(
        default="",
        description="Storage secret key (use env var APP_STORAGE_SECRET_KEY)",
    )
    storage_bucket: str = Field(
        default="invoices",
        description="Bucket name for generated invoices",
    )
    storage_secure: bool = Field(
        default=False,
        description="Use HTTPS for storage connections",
    )
    memory_store_max_invoices: int = Field(
        default=1000,
        gt=0,
        description="Invoices kept by the in-memory fallback store before the oldest are evicted",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
