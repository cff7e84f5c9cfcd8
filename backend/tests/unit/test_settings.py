# backend/tests/unit/test_settings.py
import pytest
from fastapi import FastAPI

from armelle.config.settings import Settings, validate_environment
from armelle.utils.lifecycle import build_services


def _settings(**overrides):
    values = {"environment": "test", "use_in_memory_store": True}
    values.update(overrides)
    return Settings(**values)


def test_dgi_budget_is_a_share_of_the_action_timeout():
    assert _settings(action_timeout_seconds=10.0).dgi_budget_seconds == pytest.approx(8.0)
    assert _settings(action_timeout_seconds=0).dgi_budget_seconds is None


def test_dgi_timeout_must_fit_inside_the_action_timeout():
    with pytest.raises(SystemExit):
        validate_environment(_settings(action_timeout_seconds=5.0, dgi_timeout_seconds=8.0))

    config = _settings(action_timeout_seconds=10.0, dgi_timeout_seconds=8.0)
    assert validate_environment(config) is config


def test_unknown_default_language_is_rejected():
    with pytest.raises(SystemExit):
        validate_environment(_settings(default_language="de"))


@pytest.mark.asyncio
async def test_build_services_bounds_the_dgi_lookup():
    app = FastAPI()
    build_services(app, _settings(action_timeout_seconds=2.0, dgi_timeout_seconds=3.0))

    dgi_service = app.state.dgi_service
    try:
        assert dgi_service.budget_seconds == pytest.approx(1.6)
        assert dgi_service.http_client.timeout.read == pytest.approx(1.6)
    finally:
        await dgi_service.close()
