import pytest

from tokenagg.config.settings import settings


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    monkeypatch.setattr(settings, "redis_url", None)
