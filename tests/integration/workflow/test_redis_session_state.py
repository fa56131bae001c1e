"""Integration tests for the Redis session backends.

Exercises RedisSessionStateStore and RedisSessionMutex against a real
Redis instance, including a full controller run.
"""

import asyncio

import pytest
import pytest_asyncio

from attune.config.models.storage import RedisStateConfig
from attune.workflow.controller import SessionPhaseController
from attune.workflow.errors import SessionBusyError
from attune.workflow.graph import build_graph, load_preset_definition
from attune.workflow.models import SessionFieldValue, ValueType
from attune.workflow.mutex import RedisSessionMutex
from attune.workflow.stores import RedisSessionStateStore
from tests.factories import (
    FakeClock,
    SessionStateFactory,
    process_and_check_in,
    walk_to_processing,
)


@pytest_asyncio.fixture
async def state_store(redis_client, key_prefix, clean_redis):
    """Create RedisSessionStateStore with test client."""
    config = RedisStateConfig(key_prefix=key_prefix, ttl_seconds=60)
    return RedisSessionStateStore(redis_client, config)


@pytest.fixture
def redis_mutex(redis_client, key_prefix):
    return RedisSessionMutex(
        redis_client, key_prefix=key_prefix, lock_timeout=5, blocking_timeout=0.2
    )


def field_value(name: str, value: object) -> SessionFieldValue:
    return SessionFieldValue(
        session_id="session-1",
        phase_id="intake",
        field_name=name,
        value=value,
        value_type=ValueType.INTEGER,
    )


@pytest.mark.integration
class TestRedisSessionStateStore:
    """Test basic store operations."""

    async def test_progress_round_trip(self, state_store):
        """Test saving and retrieving the progress aggregate."""
        progress = SessionStateFactory.progress(current_phase="closing", transition_count=2)
        progress.loop_timer("focused_mindfulness").accumulated_seconds = 90.5

        await state_store.save_progress(progress)
        loaded = await state_store.get_progress("session-1")

        assert loaded == progress
        assert await state_store.get_progress("other") is None

    async def test_field_values(self, state_store):
        """Test upsert, bulk read and delete of field values."""
        await state_store.save_field_value(field_value("rating", 3))
        await state_store.save_field_value(field_value("rating", 4))
        await state_store.save_field_value(field_value("pace", 1))

        values = await state_store.get_field_values("session-1")
        assert {name: v.value for name, v in values.items()} == {"rating": 4, "pace": 1}

        deleted = await state_store.delete_field_values("session-1", ["missing", "rating"])
        assert deleted == ["rating"]
        assert await state_store.get_field_value("session-1", "rating") is None

    async def test_phase_states_keep_creation_order(self, state_store):
        """Test that updates do not reorder phase states."""
        clock = FakeClock()
        first = SessionStateFactory.phase_state(phase_start_time=clock.now)
        second = SessionStateFactory.phase_state(phase_id="closing", phase_start_time=clock.now)
        await state_store.save_phase_state(first)
        await state_store.save_phase_state(second)

        first.message_count = 3
        await state_store.save_phase_state(first)

        states = await state_store.list_phase_states("session-1")
        assert [s.phase_id for s in states] == ["intake", "closing"]
        assert states[0].message_count == 3

    async def test_delete_phase_state(self, state_store):
        """Test removing one visit from the hash and the order list."""
        clock = FakeClock()
        first = SessionStateFactory.phase_state(phase_start_time=clock.now)
        second = SessionStateFactory.phase_state(phase_id="closing", phase_start_time=clock.now)
        await state_store.save_phase_state(first)
        await state_store.save_phase_state(second)

        assert await state_store.delete_phase_state("session-1", second.id) is True
        assert await state_store.delete_phase_state("session-1", second.id) is False
        assert [s.id for s in await state_store.list_phase_states("session-1")] == [first.id]

    async def test_ttl_is_applied(self, state_store, redis_client, key_prefix):
        """Test that writes set the session TTL."""
        await state_store.save_progress(SessionStateFactory.progress())

        ttl = await redis_client.ttl(f"{key_prefix}:progress:session-1")
        assert 0 < ttl <= 60

    async def test_delete_session(self, state_store):
        """Test removing every key of a session."""
        await state_store.save_progress(SessionStateFactory.progress())
        await state_store.save_field_value(field_value("rating", 3))

        assert await state_store.delete_session("session-1") is True
        assert await state_store.get_field_values("session-1") == {}
        assert await state_store.delete_session("session-1") is False


@pytest.mark.integration
class TestRedisSessionMutex:
    """Test the distributed session lock."""

    async def test_contended_lock(self, redis_mutex, clean_redis):
        """Test that a second holder times out."""
        async with redis_mutex.acquire("session-1") as acquired:
            assert acquired
            assert await redis_mutex.is_locked("session-1")
            async with redis_mutex.acquire("session-1") as second:
                assert not second

        assert not await redis_mutex.is_locked("session-1")

    async def test_zero_timeout_does_not_wait(self, redis_client, key_prefix, clean_redis):
        """Test that an explicit zero timeout overrides the default."""
        mutex = RedisSessionMutex(redis_client, key_prefix=key_prefix, blocking_timeout=5.0)

        async with mutex.acquire("session-1"):
            async with asyncio.timeout(1):
                async with mutex.acquire("session-1", blocking_timeout=0) as acquired:
                    assert not acquired


@pytest.mark.integration
class TestControllerOnRedis:
    """Test the controller with both Redis backends."""

    async def test_processing_loop(self, state_store, redis_mutex):
        """Test a loop re-entry persisted through Redis."""
        clock = FakeClock()
        graph = build_graph(load_preset_definition("eight_stage"))
        controller = SessionPhaseController(
            graph, state_store, mutex=redis_mutex, clock=clock
        )

        await walk_to_processing(controller, "session-1")
        await process_and_check_in(controller, clock, "session-1", minutes=12)
        result = await controller.submit("session-1", {"suds_current": 4})

        assert result.loop_reentry
        snapshot = await controller.get_session_snapshot("session-1")
        assert snapshot.loop_timers["focused_mindfulness"].accumulated_seconds == 720
        assert snapshot.loop_timers["focused_mindfulness"].loop_count == 1

    async def test_concurrent_submits(self, state_store, redis_mutex):
        """Test that concurrent turns are all recorded."""
        graph = build_graph(load_preset_definition("eight_stage"))
        controller = SessionPhaseController(graph, state_store, mutex=redis_mutex)
        await controller.start_session("session-1")

        async def collect(i: int) -> None:
            async with asyncio.timeout(5):
                while True:
                    try:
                        await controller.collect("session-1", {f"note_{i}": i})
                        return
                    except SessionBusyError:
                        await asyncio.sleep(0.01)

        await asyncio.gather(*(collect(i) for i in range(5)))

        state = await state_store.get_live_phase_state("session-1")
        assert state.message_count == 5
