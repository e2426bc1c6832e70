"""
Redis Repository implementations.

Mirrors the adapter state into Redis so that UI processes can read it.
Nothing here is read back by the adapter: keys are reset at startup.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..core.exceptions import RepositoryError
from ..core.value_objects import PaymentState
from ..loggers import logger


# =============================================================================
# Base Repository
# =============================================================================


class RedisStateRepository:
    """
    Base repository for Redis state operations.

    Provides common Redis operations with error handling.
    """

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def get(self, key: str) -> Optional[str]:
        """Get a string value by key."""
        try:
            return await self._redis.get(key)
        except RedisError as e:
            raise RepositoryError(f"Redis error: {e}") from e

    async def set(self, key: str, value: Any) -> None:
        """Set a key-value pair."""
        try:
            await self._redis.set(key, value)
        except RedisError as e:
            raise RepositoryError(f"Redis error: {e}") from e

    async def delete(self, *keys: str) -> None:
        """Delete keys."""
        try:
            await self._redis.delete(*keys)
        except RedisError as e:
            raise RepositoryError(f"Redis error: {e}") from e


# =============================================================================
# Terminal State Repository
# =============================================================================


class TerminalStateRepository(RedisStateRepository):
    """
    Mirror of the terminal session for outside observers.

    The adapter only writes; the get_state, is_connected and
    get_last_outcome readers are for UI processes sharing the Redis.
    """

    def __init__(self, redis: Redis, prefix: str = "tpe") -> None:
        super().__init__(redis)
        self.state_key = f"{prefix}:current_state"
        self.connected_key = f"{prefix}:connected"
        self.last_outcome_key = f"{prefix}:last_outcome"

    async def set_state(self, state: str) -> None:
        """Record the current payment state."""
        await self.set(self.state_key, state)

    async def get_state(self) -> str:
        """Read the mirrored payment state."""
        return await self.get(self.state_key) or PaymentState.IDLE.value

    async def set_connected(self, connected: bool) -> None:
        """Record the terminal connection status."""
        await self.set(self.connected_key, int(connected))

    async def is_connected(self) -> bool:
        """Read the mirrored connection status."""
        return await self.get(self.connected_key) == "1"

    async def set_last_outcome(self, outcome: dict[str, Any]) -> None:
        """Record the outcome of the last payment as JSON."""
        await self.set(self.last_outcome_key, json.dumps(outcome, default=str))

    async def get_last_outcome(self) -> Optional[dict[str, Any]]:
        """Read the outcome of the last payment."""
        raw = await self.get(self.last_outcome_key)
        return json.loads(raw) if raw else None

    async def reset(self, state: Optional[str] = None) -> None:
        """Clear the mirror and record the starting state."""
        await self.delete(self.last_outcome_key)
        await self.set_state(state or PaymentState.IDLE.value)
        await self.set_connected(False)
        logger.debug(f"Terminal state mirror reset under {self.state_key}")
