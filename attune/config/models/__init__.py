"""Configuration model exports.

    from attune.config.models import WorkflowConfig, StorageConfig
"""

from attune.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from attune.config.models.storage import (
    MutexConfig,
    RedisStateConfig,
    SessionStorageConfig,
    StorageConfig,
)
from attune.config.models.workflow import WorkflowConfig

__all__ = [
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "MutexConfig",
    "RedisStateConfig",
    "SessionStorageConfig",
    "StorageConfig",
    "WorkflowConfig",
]
