"""Workflow storage interfaces and implementations."""

from attune.workflow.stores.config_store import ConfigStore
from attune.workflow.stores.inmemory import InMemoryConfigStore, InMemorySessionStateStore
from attune.workflow.stores.redis import RedisSessionStateStore
from attune.workflow.stores.session_store import SessionStateStore

__all__ = [
    "ConfigStore",
    "InMemoryConfigStore",
    "InMemorySessionStateStore",
    "RedisSessionStateStore",
    "SessionStateStore",
]
