import asyncio
from unittest.mock import AsyncMock, patch

import httpx

from payloads import ARB_CONTRACT
from tokenagg.config.settings import settings
from tokenagg.providers import coingecko, coinmarketcap, defillama, etherscan
from tokenagg.schemas.provider import unavailable


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


def _cached_fetch(module, argument):
    cached = unavailable("cached", "served from cache")

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_unreachable)) as client:
            return await module.fetch_token(argument, client)

    with patch(f"{module.__name__}.get_result", AsyncMock(return_value=cached)) as get_result:
        result = asyncio.run(go())

    assert result is cached
    return get_result.call_args.args[0]


def test_coingecko_cache_key() -> None:
    assert _cached_fetch(coingecko, "ARB") == "coingecko:arb"


def test_etherscan_cache_key() -> None:
    assert _cached_fetch(etherscan, ARB_CONTRACT) == f"etherscan:{ARB_CONTRACT.lower()}"


def test_coinmarketcap_cache_key() -> None:
    assert _cached_fetch(coinmarketcap, "arb") == "coinmarketcap:ARB"


def test_defillama_cache_key() -> None:
    previous_chain = settings.providers.chain
    settings.providers.chain = "arbitrum"
    try:
        key = _cached_fetch(defillama, ARB_CONTRACT)
    finally:
        settings.providers.chain = previous_chain
    assert key == f"defillama:arbitrum:{ARB_CONTRACT.lower()}"


def test_missing_contract_address_is_not_cached() -> None:
    with patch("tokenagg.providers.etherscan.store", AsyncMock()) as store:
        result = asyncio.run(etherscan.fetch_token(None, client=None))

    assert result.error == "No contract address provided"
    assert store.called is False


def test_missing_api_key_is_cached_as_error() -> None:
    previous_key = settings.providers.coinmarketcap_api_key
    settings.providers.coinmarketcap_api_key = None
    try:
        with patch("tokenagg.cache.set_result", AsyncMock()) as set_result:
            result = asyncio.run(coinmarketcap.fetch_token("ARB", client=None))
    finally:
        settings.providers.coinmarketcap_api_key = previous_key

    assert result.available is False
    key, stored, ttl = set_result.call_args.args
    assert key == "coinmarketcap:ARB"
    assert stored is result
    assert ttl == settings.provider_cache_error_ttl_seconds
