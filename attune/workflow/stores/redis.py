"""Redis implementation of SessionStateStore.

Key structure:
- {prefix}:progress:{session_id} - Session progress aggregate (JSON)
- {prefix}:fields:{session_id} - Hash of field_name -> field value (JSON)
- {prefix}:phase_states:{session_id} - Hash of state id -> phase state (JSON)
- {prefix}:phase_order:{session_id} - List of state ids in creation order

Every write refreshes the TTL of the session's keys.
"""

import redis.asyncio as redis

from attune.config.models.storage import RedisStateConfig
from attune.observability.logging import get_logger
from attune.workflow.errors import StoreError
from attune.workflow.models import SessionFieldValue, SessionPhaseState, SessionProgress
from attune.workflow.stores.session_store import SessionStateStore

logger = get_logger(__name__)


class RedisSessionStateStore(SessionStateStore):
    """Redis implementation of SessionStateStore.

    Records are serialized with pydantic's JSON encoder. Failures of the
    Redis client surface as StoreError.
    """

    def __init__(
        self,
        client: redis.Redis,
        config: RedisStateConfig | None = None,
    ) -> None:
        """Initialize Redis session state store.

        Args:
            client: Redis client instance
            config: Redis state configuration (uses defaults if not provided)
        """
        self._client = client
        self._config = config or RedisStateConfig()
        self._prefix = self._config.key_prefix
        self._ttl = self._config.ttl_seconds

    def _progress_key(self, session_id: str) -> str:
        return f"{self._prefix}:progress:{session_id}"

    def _fields_key(self, session_id: str) -> str:
        return f"{self._prefix}:fields:{session_id}"

    def _states_key(self, session_id: str) -> str:
        return f"{self._prefix}:phase_states:{session_id}"

    def _order_key(self, session_id: str) -> str:
        return f"{self._prefix}:phase_order:{session_id}"

    def _session_keys(self, session_id: str) -> list[str]:
        return [
            self._progress_key(session_id),
            self._fields_key(session_id),
            self._states_key(session_id),
            self._order_key(session_id),
        ]

    def _touch(self, pipe: redis.client.Pipeline, session_id: str) -> None:
        for key in self._session_keys(session_id):
            pipe.expire(key, self._ttl)

    async def get_progress(self, session_id: str) -> SessionProgress | None:
        """Get the progress aggregate of a session."""
        try:
            data = await self._client.get(self._progress_key(session_id))
        except redis.RedisError as e:
            logger.error("redis_get_progress_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to get session progress: {e}", cause=e) from e
        if not data:
            return None
        return SessionProgress.model_validate_json(data)

    async def save_progress(self, progress: SessionProgress) -> str:
        """Save the progress aggregate, returning the session ID."""
        session_id = progress.session_id
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(self._progress_key(session_id), progress.model_dump_json())
                self._touch(pipe, session_id)
                await pipe.execute()
        except redis.RedisError as e:
            logger.error("redis_save_progress_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to save session progress: {e}", cause=e) from e
        return session_id

    async def get_field_value(
        self, session_id: str, field_name: str
    ) -> SessionFieldValue | None:
        """Get a single collected field value."""
        try:
            data = await self._client.hget(self._fields_key(session_id), field_name)
        except redis.RedisError as e:
            logger.error("redis_get_field_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to get field value: {e}", cause=e) from e
        if not data:
            return None
        return SessionFieldValue.model_validate_json(data)

    async def get_field_values(self, session_id: str) -> dict[str, SessionFieldValue]:
        """Get all collected field values keyed by field name."""
        try:
            data = await self._client.hgetall(self._fields_key(session_id))
        except redis.RedisError as e:
            logger.error("redis_get_fields_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to get field values: {e}", cause=e) from e
        values = {}
        for raw in data.values():
            value = SessionFieldValue.model_validate_json(raw)
            values[value.field_name] = value
        return values

    async def save_field_value(self, value: SessionFieldValue) -> None:
        """Upsert a field value keyed by (session_id, field_name)."""
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(
                    self._fields_key(value.session_id),
                    value.field_name,
                    value.model_dump_json(),
                )
                self._touch(pipe, value.session_id)
                await pipe.execute()
        except redis.RedisError as e:
            logger.error(
                "redis_save_field_error",
                session_id=value.session_id,
                field_name=value.field_name,
                error=str(e),
            )
            raise StoreError(f"Failed to save field value: {e}", cause=e) from e

    async def delete_field_values(
        self, session_id: str, field_names: list[str]
    ) -> list[str]:
        """Delete field values, returning the names that existed."""
        if not field_names:
            return []
        key = self._fields_key(session_id)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                for name in field_names:
                    pipe.hdel(key, name)
                results = await pipe.execute()
        except redis.RedisError as e:
            logger.error("redis_delete_fields_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to delete field values: {e}", cause=e) from e
        return [name for name, removed in zip(field_names, results, strict=True) if removed]

    async def save_phase_state(self, state: SessionPhaseState) -> str:
        """Insert or update a phase state by its ID, returning the ID."""
        session_id = state.session_id
        try:
            is_new = not await self._client.hexists(self._states_key(session_id), state.id)
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(self._states_key(session_id), state.id, state.model_dump_json())
                if is_new:
                    pipe.rpush(self._order_key(session_id), state.id)
                self._touch(pipe, session_id)
                await pipe.execute()
        except redis.RedisError as e:
            logger.error("redis_save_phase_state_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to save phase state: {e}", cause=e) from e
        return state.id

    async def get_live_phase_state(self, session_id: str) -> SessionPhaseState | None:
        """Get the phase state that has not been finalized, if any."""
        for state in reversed(await self.list_phase_states(session_id)):
            if state.is_live:
                return state
        return None

    async def list_phase_states(
        self, session_id: str, phase_id: str | None = None
    ) -> list[SessionPhaseState]:
        """List phase states in the order they were created."""
        try:
            order = await self._client.lrange(self._order_key(session_id), 0, -1)
            data = await self._client.hgetall(self._states_key(session_id))
        except redis.RedisError as e:
            logger.error("redis_list_phase_states_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to list phase states: {e}", cause=e) from e
        states = []
        for state_id in order:
            raw = data.get(state_id)
            if raw is None:
                continue
            state = SessionPhaseState.model_validate_json(raw)
            if phase_id is None or state.phase_id == phase_id:
                states.append(state)
        return states

    async def delete_phase_state(self, session_id: str, state_id: str) -> bool:
        """Remove one phase state, returning whether it existed."""
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hdel(self._states_key(session_id), state_id)
                pipe.lrem(self._order_key(session_id), 0, state_id)
                removed, _ = await pipe.execute()
        except redis.RedisError as e:
            logger.error("redis_delete_phase_state_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to delete phase state: {e}", cause=e) from e
        return removed > 0

    async def delete_session(self, session_id: str) -> bool:
        """Delete all state of a session."""
        try:
            deleted = await self._client.delete(*self._session_keys(session_id))
        except redis.RedisError as e:
            logger.error("redis_delete_session_error", session_id=session_id, error=str(e))
            raise StoreError(f"Failed to delete session: {e}", cause=e) from e
        logger.info("session_state_deleted", session_id=session_id, deleted=deleted > 0)
        return deleted > 0
