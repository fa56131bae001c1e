"""Logging and metrics settings."""

from typing import Literal

from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["json", "console"]


class LoggingConfig(BaseModel):
    """structlog output settings."""

    level: LogLevel = Field(default="INFO", description="Minimum level emitted")
    format: LogFormat = Field(
        default="json", description="json in production, console for development"
    )
    redact_pii: bool = Field(
        default=True, description="Mask client text and contact details in events"
    )


class MetricsConfig(BaseModel):
    """Prometheus exposition settings.

    Metrics are always recorded on the default registry. The exporter is
    only started when enabled and a port is given; hosts that already serve
    /metrics leave the port unset.
    """

    enabled: bool = Field(default=True, description="Allow starting the exporter")
    port: int | None = Field(
        default=None, ge=1, le=65535, description="Port for the /metrics HTTP exporter"
    )


class ObservabilityConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
