from __future__ import annotations

from typing import List

import pytest

import main
from config.settings import RateLimitSettings, Settings
from core.contracts import ProductIdentity, PropertySpec
from utils.exceptions import ConfigurationError

IDENTITY = ProductIdentity(article_number="A123", product_name="Widget Pro")
SCHEMA = [PropertySpec(name="Breite", order_index=0)]


class _RecordingLimiter:
    instances: List["_RecordingLimiter"] = []

    def __init__(self, *args, **kwargs) -> None:
        self.closed = False
        _RecordingLimiter.instances.append(self)

    def close(self) -> None:
        self.closed = True


class _RecordingPool:
    instances: List["_RecordingPool"] = []

    def __init__(self, *args, **kwargs) -> None:
        self.closed = False
        _RecordingPool.instances.append(self)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def recorders(monkeypatch: pytest.MonkeyPatch):
    _RecordingLimiter.instances = []
    _RecordingPool.instances = []
    monkeypatch.setattr(main, "PersistentRateLimiter", _RecordingLimiter)
    monkeypatch.setattr(main, "BrowserPool", _RecordingPool)
    monkeypatch.setattr(main, "PlaywrightLauncher", lambda **kwargs: object())
    return _RecordingLimiter, _RecordingPool


@pytest.mark.asyncio
async def test_run_pipeline_releases_resources_when_llm_setup_fails(
    recorders, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _missing_key(*args, **kwargs):
        raise ConfigurationError("OpenAI API key not configured")

    monkeypatch.setattr(main, "get_llm", _missing_key)
    settings = Settings(rate_limit=RateLimitSettings(enabled=True))

    with pytest.raises(ConfigurationError):
        await main.run_pipeline(settings, IDENTITY, SCHEMA, url="https://maker.example/a123")

    limiter_cls, pool_cls = recorders
    assert [limiter.closed for limiter in limiter_cls.instances] == [True]
    assert [pool.closed for pool in pool_cls.instances] == [True]


@pytest.mark.asyncio
async def test_run_pipeline_without_browser_or_limiter_still_raises_setup_error(
    recorders, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _missing_key(*args, **kwargs):
        raise ConfigurationError("OpenAI API key not configured")

    monkeypatch.setattr(main, "get_llm", _missing_key)
    settings = Settings(rate_limit=RateLimitSettings(enabled=False))

    with pytest.raises(ConfigurationError):
        await main.run_pipeline(settings, IDENTITY, SCHEMA, url="https://maker.example/a123", use_browser=False)

    limiter_cls, pool_cls = recorders
    assert limiter_cls.instances == []
    assert pool_cls.instances == []
