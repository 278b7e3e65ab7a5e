"""Application configuration and settings."""

from string import Formatter
from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Service Configuration
    service_name: str = Field(default="collections-engine")
    service_version: str = Field(default="1.0.0")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    environment: str = Field(default="development")
    api_prefix: str = Field(default="/api/v1")

    # Store Configuration
    store_backend: str = Field(default="memory")  # memory | sql
    database_url: str = Field(default="sqlite:///./collections.db")
    database_echo: bool = Field(default=False)

    # Channel Gateways
    email_gateway_url: str = Field(default="http://localhost:8101")
    sms_gateway_url: str = Field(default="http://localhost:8102")
    chat_gateway_url: str = Field(default="http://localhost:8103")
    gateway_api_key: Optional[str] = Field(default=None)
    email_sender: str = Field(default="collections@example.com")
    sms_sender: str = Field(default="+15550000000")
    chat_sender: str = Field(default="+15550000001")

    # Transport Timeouts (seconds)
    transport_timeout_seconds: float = Field(default=15.0)
    gateway_request_timeout_seconds: float = Field(default=10.0)

    # Circuit Breaker Configuration
    circuit_breaker_failure_threshold: int = Field(default=5)
    circuit_breaker_timeout_seconds: int = Field(default=60)

    # Retry Configuration
    retry_max_attempts: int = Field(default=3)
    retry_base_delay_seconds: float = Field(default=0.5)
    retry_max_delay_seconds: float = Field(default=5.0)

    # Reclassification Scheduler
    reclassification_enabled: bool = Field(default=True)
    reclassification_interval_hours: float = Field(default=24.0)
    reclassification_run_on_startup: bool = Field(default=True)
    reclassification_concurrency: int = Field(default=10)

    # Rendering
    currency_symbol: str = Field(default="$")
    date_format: str = Field(default="%Y-%m-%d")
    email_subject_template: str = Field(default="Payment reminder - Invoice {invoice_number}")

    # Development Settings
    enable_cors: bool = Field(default=True)
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"]
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "sql"):
            raise ValueError("Store backend must be 'memory' or 'sql'")
        return v

    @field_validator("email_subject_template")
    @classmethod
    def validate_email_subject_template(cls, v: str) -> str:
        try:
            fields = [parsed[1:] for parsed in Formatter().parse(v)]
        except ValueError as e:
            raise ValueError(f"Email subject template is malformed: {e}")
        for name, format_spec, conversion in fields:
            if name is None:
                continue
            if not name.isidentifier() or format_spec or conversion:
                raise ValueError(
                    "Email subject placeholders must be plain names such as {invoice_number}"
                )
        return v

    @field_validator(
        "transport_timeout_seconds",
        "gateway_request_timeout_seconds",
        "reclassification_interval_hours",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Intervals and timeouts must be positive")
        return v

    @field_validator("reclassification_concurrency", "retry_max_attempts")
    @classmethod
    def validate_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @property
    def reclassification_interval_seconds(self) -> float:
        return self.reclassification_interval_hours * 3600

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Create global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
