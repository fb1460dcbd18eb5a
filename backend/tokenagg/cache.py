from __future__ import annotations

import json

from redis.asyncio import Redis

from tokenagg.config.settings import settings
from tokenagg.schemas.provider import (
    AvailableResult,
    ProviderData,
    SourceResult,
    UnavailableResult,
)


def _get_client() -> Redis | None:
    if not settings.redis_url:
        return None
    return Redis.from_url(settings.redis_url)


async def get_result(cache_key: str, data_model: type[ProviderData]) -> SourceResult | None:
    client = _get_client()
    if client is None:
        return None
    try:
        async with client:
            raw = await client.get(cache_key)
    except Exception:
        return None

    if not raw:
        return None

    try:
        payload = json.loads(raw)
        if payload.get("available"):
            return AvailableResult(
                source=payload["source"],
                data=data_model.model_validate(payload["data"]),
            )
        return UnavailableResult(**payload)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError):
        return None


async def set_result(cache_key: str, result: SourceResult, ttl_seconds: int) -> None:
    client = _get_client()
    if client is None:
        return None
    try:
        async with client:
            await client.setex(cache_key, ttl_seconds, result.model_dump_json())
    except Exception:
        return None


async def store(cache_key: str, result: SourceResult) -> SourceResult:
    ttl = (
        settings.provider_cache_ttl_seconds
        if result.available
        else settings.provider_cache_error_ttl_seconds
    )
    await set_result(cache_key, result, ttl)
    return result
