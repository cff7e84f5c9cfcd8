# /armelle/services/session_store.py

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from armelle.models.flow import WorkflowContext, utcnow
from armelle.utils.metrics import session_store_operations

# This service persists one WorkflowContext per session key. Saves are
# compare-and-set on the context version: a save only succeeds when the stored
# version still equals the version the turn started from, and the stored copy
# then carries expected_version + 1.

logger = logging.getLogger(__name__)

# KEYS[1] = session key; ARGV = expected version, payload, ttl seconds
_SAVE_SCRIPT = """
local current = redis.call('GET', KEYS[1])
local version = 0
if current then
    version = tonumber(cjson.decode(current)['version']) or 0
end
if version ~= tonumber(ARGV[1]) then
    return 0
end
redis.call('SET', KEYS[1], ARGV[2], 'EX', tonumber(ARGV[3]))
return 1
"""


class SessionStore(Protocol):
    async def load(self, key: str) -> Optional[WorkflowContext]: ...

    async def save(self, key: str, context: WorkflowContext, expected_version: int) -> bool: ...

    async def clear(self, key: str) -> None: ...


def _versioned(context: WorkflowContext, expected_version: int) -> WorkflowContext:
    return context.model_copy(update={"version": expected_version + 1, "last_updated": utcnow()}, deep=True)


class InMemorySessionStore:
    """Process-local store for development and tests. Stores JSON to mirror Redis."""

    def __init__(self):
        self._sessions: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def load(self, key: str) -> Optional[WorkflowContext]:
        raw = self._sessions.get(key)
        return WorkflowContext.model_validate_json(raw) if raw else None

    async def save(self, key: str, context: WorkflowContext, expected_version: int) -> bool:
        async with self._lock:
            raw = self._sessions.get(key)
            current = WorkflowContext.model_validate_json(raw).version if raw else 0
            if current != expected_version:
                session_store_operations.labels(operation="save", status="conflict").inc()
                return False
            self._sessions[key] = _versioned(context, expected_version).model_dump_json()
            session_store_operations.labels(operation="save", status="success").inc()
            return True

    async def clear(self, key: str) -> None:
        async with self._lock:
            self._sessions.pop(key, None)


class RedisSessionStore:
    def __init__(self, redis_client: Any, key_prefix: str = "bot_session:", ttl_seconds: int = 86400):
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def load(self, key: str) -> Optional[WorkflowContext]:
        try:
            raw = await self.redis.get(self._key(key))
        except Exception as e:
            session_store_operations.labels(operation="load", status="error").inc()
            logger.error(f"Session load failed for {key}: {e}")
            raise

        if raw is None:
            session_store_operations.labels(operation="load", status="miss").inc()
            return None

        try:
            context = WorkflowContext.model_validate_json(raw)
        except ValidationError as e:
            # A session that no longer parses is dropped; the user starts over
            session_store_operations.labels(operation="load", status="corrupt").inc()
            logger.error(f"Discarding unreadable session {key}: {e}")
            await self.redis.delete(self._key(key))
            return None

        session_store_operations.labels(operation="load", status="hit").inc()
        return context

    async def save(self, key: str, context: WorkflowContext, expected_version: int) -> bool:
        payload = _versioned(context, expected_version).model_dump_json()
        try:
            stored = await self.redis.eval(_SAVE_SCRIPT, 1, self._key(key), expected_version, payload, self.ttl_seconds)
        except Exception as e:
            session_store_operations.labels(operation="save", status="error").inc()
            logger.error(f"Session save failed for {key}: {e}")
            raise

        if int(stored) != 1:
            session_store_operations.labels(operation="save", status="conflict").inc()
            logger.warning(f"Version conflict saving session {key} (expected version {expected_version})")
            return False

        session_store_operations.labels(operation="save", status="success").inc()
        return True

    async def clear(self, key: str) -> None:
        await self.redis.delete(self._key(key))
        session_store_operations.labels(operation="clear", status="success").inc()
