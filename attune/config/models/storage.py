"""Session state storage configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

SessionBackendType = Literal["inmemory", "redis"]
MutexBackendType = Literal["local", "redis"]


class RedisStateConfig(BaseModel):
    """Redis connection and key layout for session state."""

    url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    key_prefix: str = Field(default="attune", description="Key prefix for all keys")
    ttl_seconds: int = Field(
        default=604800,  # 7 days
        gt=0,
        description="TTL applied to every session key on write",
    )


class SessionStorageConfig(BaseModel):
    """Backend for per-session field values and phase states."""

    backend: SessionBackendType = Field(default="inmemory", description="Backend type")
    redis: RedisStateConfig = Field(
        default_factory=RedisStateConfig, description="Redis settings"
    )


class MutexConfig(BaseModel):
    """Per-session mutual exclusion settings."""

    backend: MutexBackendType = Field(default="local", description="Lock backend")
    lock_timeout: int = Field(
        default=30, gt=0, description="Seconds before a held lock auto-releases"
    )
    blocking_timeout: float = Field(
        default=5.0, gt=0, description="Seconds to wait when acquiring"
    )


class StorageConfig(BaseModel):
    """Storage configuration."""

    session: SessionStorageConfig = Field(
        default_factory=SessionStorageConfig, description="Session state storage"
    )
    mutex: MutexConfig = Field(default_factory=MutexConfig, description="Session locks")
