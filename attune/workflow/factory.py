"""Factories for building the workflow engine from settings.

Backends are chosen by configuration:
- storage.session.backend: "inmemory" or "redis"
- storage.mutex.backend: "local" or "redis"

The Redis URL comes from storage.session.redis.url, which the
ATTUNE_STORAGE__SESSION__REDIS__URL environment variable overrides.
"""

import redis.asyncio as redis

from attune.config.models.storage import MutexConfig, SessionStorageConfig
from attune.config.settings import Settings
from attune.observability.logging import get_logger
from attune.workflow.controller import SessionPhaseController
from attune.workflow.graph import PhaseGraph, load_graph
from attune.workflow.models import Clock, utc_now
from attune.workflow.mutex import LocalSessionMutex, RedisSessionMutex, SessionMutex
from attune.workflow.stores import (
    InMemorySessionStateStore,
    RedisSessionStateStore,
    SessionStateStore,
)

logger = get_logger(__name__)


def create_redis_client(config: SessionStorageConfig) -> redis.Redis:
    """Create an async Redis client from session storage configuration."""
    return redis.Redis.from_url(config.redis.url, decode_responses=True)


def create_session_state_store(
    config: SessionStorageConfig,
    client: redis.Redis | None = None,
) -> SessionStateStore:
    """Create a SessionStateStore based on configuration.

    Raises:
        ValueError: If backend type is not supported
    """
    backend = config.backend

    if backend == "inmemory":
        logger.info("creating_session_state_store", backend="inmemory")
        return InMemorySessionStateStore()

    elif backend == "redis":
        logger.info(
            "creating_session_state_store",
            backend="redis",
            prefix=config.redis.key_prefix,
            ttl_seconds=config.redis.ttl_seconds,
        )
        return RedisSessionStateStore(client or create_redis_client(config), config.redis)

    else:
        raise ValueError(f"Unsupported session state backend: {backend}")


def create_session_mutex(
    config: MutexConfig,
    session_config: SessionStorageConfig,
    client: redis.Redis | None = None,
) -> SessionMutex:
    """Create a SessionMutex based on configuration.

    Raises:
        ValueError: If backend type is not supported
    """
    backend = config.backend

    if backend == "local":
        return LocalSessionMutex(blocking_timeout=config.blocking_timeout)

    elif backend == "redis":
        return RedisSessionMutex(
            client or create_redis_client(session_config),
            key_prefix=session_config.redis.key_prefix,
            lock_timeout=config.lock_timeout,
            blocking_timeout=config.blocking_timeout,
        )

    else:
        raise ValueError(f"Unsupported session mutex backend: {backend}")


def create_controller(
    settings: Settings,
    *,
    graph: PhaseGraph | None = None,
    state_store: SessionStateStore | None = None,
    mutex: SessionMutex | None = None,
    clock: Clock = utc_now,
) -> SessionPhaseController:
    """Build a controller from settings.

    The graph is loaded from `settings.workflow` unless given; a
    configuration error there aborts startup.
    """
    storage = settings.storage
    client = None
    if (state_store is None and storage.session.backend == "redis") or (
        mutex is None and storage.mutex.backend == "redis"
    ):
        client = create_redis_client(storage.session)

    controller = SessionPhaseController(
        graph or load_graph(settings.workflow),
        state_store or create_session_state_store(storage.session, client),
        mutex=mutex or create_session_mutex(storage.mutex, storage.session, client),
        clock=clock,
        count_empty_submit_as_turn=settings.workflow.count_empty_submit_as_turn,
    )
    logger.info(
        "controller_created",
        graph=controller.graph.name,
        session_backend=storage.session.backend,
        mutex_backend=storage.mutex.backend,
    )
    return controller
