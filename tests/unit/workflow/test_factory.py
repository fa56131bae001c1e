"""Unit tests for building the engine from settings."""

from collections.abc import Generator
from pathlib import Path

import pytest

from attune.config.models import WorkflowConfig
from attune.config.models.storage import (
    MutexConfig,
    RedisStateConfig,
    SessionStorageConfig,
    StorageConfig,
)
from attune.config.settings import Settings, set_toml_config
from attune.workflow.errors import ConfigurationError
from attune.workflow.factory import (
    create_controller,
    create_session_mutex,
    create_session_state_store,
)
from attune.workflow.mutex import LocalSessionMutex, RedisSessionMutex
from attune.workflow.stores import InMemorySessionStateStore, RedisSessionStateStore
from tests.factories import FakeClock


@pytest.fixture(autouse=True)
def empty_toml_config() -> Generator[None, None, None]:
    set_toml_config({})
    yield
    set_toml_config({})


class TestCreateSessionStateStore:
    """Tests for create_session_state_store."""

    def test_inmemory(self) -> None:
        """Should create the in-memory store by default."""
        store = create_session_state_store(SessionStorageConfig())
        assert isinstance(store, InMemorySessionStateStore)

    def test_redis(self) -> None:
        """Should create a Redis store without connecting."""
        config = SessionStorageConfig(
            backend="redis", redis=RedisStateConfig(url="redis://localhost:6390/2")
        )
        store = create_session_state_store(config)
        assert isinstance(store, RedisSessionStateStore)

    def test_unsupported_backend(self) -> None:
        """Should reject unknown backends."""
        config = SessionStorageConfig.model_construct(backend="postgres")
        with pytest.raises(ValueError, match="postgres"):
            create_session_state_store(config)


class TestCreateSessionMutex:
    """Tests for create_session_mutex."""

    def test_local(self) -> None:
        """Should create the in-process lock by default."""
        mutex = create_session_mutex(MutexConfig(), SessionStorageConfig())
        assert isinstance(mutex, LocalSessionMutex)

    def test_redis(self) -> None:
        """Should create a Redis lock using the session key prefix."""
        mutex = create_session_mutex(
            MutexConfig(backend="redis"),
            SessionStorageConfig(redis=RedisStateConfig(key_prefix="coach")),
        )
        assert isinstance(mutex, RedisSessionMutex)
        assert mutex._key("s1") == "coach:sesslock:s1"


class TestCreateController:
    """Tests for create_controller."""

    def test_defaults(self) -> None:
        """Should load the configured preset with in-memory backends."""
        controller = create_controller(Settings())

        assert controller.graph.name == "eight_stage"

    @pytest.mark.asyncio
    async def test_configured_preset(self) -> None:
        """Should honour the graph and turn counting settings."""
        settings = Settings(
            workflow=WorkflowConfig(graph="ten_phase", count_empty_submit_as_turn=False)
        )
        controller = create_controller(settings, clock=FakeClock())

        await controller.start_session("s1")
        await controller.collect("s1", {})
        snapshot = await controller.get_session_snapshot("s1")

        assert controller.graph.name == "ten_phase"
        assert snapshot.phase_state is not None
        assert snapshot.phase_state.message_count == 0

    def test_graph_path(self, tmp_path: Path) -> None:
        """Should fail startup for an invalid graph file."""
        path = tmp_path / "broken.toml"
        path.write_text('name = "broken"\nentry_phase = "a"\ncompletion_phase = "b"\n')
        settings = Settings(workflow=WorkflowConfig(graph_path=path))

        with pytest.raises(ConfigurationError):
            create_controller(settings)

    def test_redis_backends_share_client(self) -> None:
        """Should build one Redis client for store and lock."""
        settings = Settings(
            storage=StorageConfig(
                session=SessionStorageConfig(backend="redis"),
                mutex=MutexConfig(backend="redis"),
            )
        )

        controller = create_controller(settings)

        assert controller._state_store._client is controller._mutex._redis
