# backend/tests/unit/test_session_store.py
import pytest
from unittest.mock import AsyncMock

from armelle.models.flow import WorkflowContext
from armelle.services.session_store import InMemorySessionStore, RedisSessionStore


def _context(**fields):
    defaults = {
        "workflow_id": "onboarding",
        "current_step_id": "confirm_single",
        "variables": {"collect_name": "Paul", "search_dgi": {"count": 1, "taxpayers": [{"niu": "P1"}]}},
        "history": ["collect_name", "confirm_single"],
        "language": "en",
    }
    defaults.update(fields)
    return WorkflowContext(**defaults)


@pytest.mark.asyncio
async def test_in_memory_round_trip_bumps_version():
    store = InMemorySessionStore()
    assert await store.load("s1") is None

    assert await store.save("s1", _context(), expected_version=0) is True
    loaded = await store.load("s1")

    assert loaded.version == 1
    assert loaded.variables == _context().variables
    assert loaded.history == ["collect_name", "confirm_single"]
    assert loaded.last_updated is not None


@pytest.mark.asyncio
async def test_in_memory_stale_save_is_rejected():
    store = InMemorySessionStore()
    await store.save("s1", _context(), expected_version=0)

    # A second turn that started from version 0 lost the race
    assert await store.save("s1", _context(current_step_id="other"), expected_version=0) is False
    assert (await store.load("s1")).current_step_id == "confirm_single"

    assert await store.save("s1", _context(current_step_id="other"), expected_version=1) is True
    assert (await store.load("s1")).version == 2


@pytest.mark.asyncio
async def test_in_memory_clear():
    store = InMemorySessionStore()
    await store.save("s1", _context(), expected_version=0)
    await store.clear("s1")
    assert await store.load("s1") is None


@pytest.fixture
def mock_redis():
    redis = AsyncMock()
    redis.get.return_value = None
    redis.eval.return_value = 1
    return redis


@pytest.mark.asyncio
async def test_redis_load_parses_stored_json(mock_redis):
    mock_redis.get.return_value = _context(version=3).model_dump_json().encode()
    store = RedisSessionStore(mock_redis, key_prefix="test:", ttl_seconds=60)

    loaded = await store.load("s1")

    mock_redis.get.assert_awaited_once_with("test:s1")
    assert loaded.version == 3
    assert loaded.variables["search_dgi"]["taxpayers"][0]["niu"] == "P1"


@pytest.mark.asyncio
async def test_redis_load_miss(mock_redis):
    assert await RedisSessionStore(mock_redis).load("s1") is None


@pytest.mark.asyncio
async def test_redis_corrupt_session_is_discarded(mock_redis):
    mock_redis.get.return_value = b"{not json"
    store = RedisSessionStore(mock_redis, key_prefix="test:")

    assert await store.load("s1") is None
    mock_redis.delete.assert_awaited_once_with("test:s1")


@pytest.mark.asyncio
async def test_redis_save_runs_compare_and_set_script(mock_redis):
    store = RedisSessionStore(mock_redis, key_prefix="test:", ttl_seconds=60)

    assert await store.save("s1", _context(version=4), expected_version=4) is True

    args = mock_redis.eval.await_args.args
    assert args[1:3] == (1, "test:s1")
    assert args[3] == 4
    assert WorkflowContext.model_validate_json(args[4]).version == 5
    assert args[5] == 60


@pytest.mark.asyncio
async def test_redis_save_conflict(mock_redis):
    mock_redis.eval.return_value = 0
    assert await RedisSessionStore(mock_redis).save("s1", _context(), expected_version=0) is False


@pytest.mark.asyncio
async def test_redis_errors_propagate(mock_redis):
    mock_redis.get.side_effect = ConnectionError("redis down")
    with pytest.raises(ConnectionError):
        await RedisSessionStore(mock_redis).load("s1")
