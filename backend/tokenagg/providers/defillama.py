from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from tokenagg.cache import get_result, store
from tokenagg.config.settings import settings
from tokenagg.errors import NotFoundError, ProviderError
from tokenagg.logger import get_logger
from tokenagg.providers.http import get_json
from tokenagg.schemas.provider import (
    DEFILLAMA,
    AvailableResult,
    DefiLlamaData,
    SourceResult,
    unavailable,
)

logger = get_logger(__name__)


class _Coin(BaseModel):
    price: Optional[float] = None
    symbol: Optional[str] = None
    timestamp: Optional[int] = None
    confidence: Optional[float] = None


class _PricesResponse(BaseModel):
    coins: Optional[dict[str, _Coin]] = None


def chain_key(contract_address: str) -> str:
    return f"{settings.providers.chain}:{contract_address.lower()}"


async def _fetch(contract_address: str, client: httpx.AsyncClient) -> DefiLlamaData:
    chain = settings.providers.chain
    base_url = settings.providers.defillama_base_url.rstrip("/")
    payload = await get_json(
        client,
        f"{base_url}/prices/current/{chain}:{contract_address}",
        "DefiLlama fetch",
    )
    response = _PricesResponse.model_validate(payload)

    coin = (response.coins or {}).get(chain_key(contract_address))
    if coin is None:
        raise NotFoundError("Token not found on DefiLlama")

    return DefiLlamaData(
        price_usd=coin.price,
        symbol=coin.symbol,
        timestamp=coin.timestamp,
        confidence=coin.confidence,
        defillama_url=f"https://defillama.com/token/{chain}:{contract_address}",
    )


async def fetch_token(contract_address: str | None, client: httpx.AsyncClient) -> SourceResult:
    if not contract_address:
        return unavailable(DEFILLAMA, "No contract address provided")

    cache_key = f"{DEFILLAMA}:{chain_key(contract_address)}"
    cached = await get_result(cache_key, DefiLlamaData)
    if cached:
        return cached

    try:
        data = await _fetch(contract_address, client)
    except (ProviderError, httpx.HTTPError, ValidationError, ValueError) as exc:
        logger.warning("provider_unavailable", source=DEFILLAMA, reason=str(exc))
        return await store(cache_key, unavailable(DEFILLAMA, str(exc)))

    return await store(cache_key, AvailableResult(source=DEFILLAMA, data=data))
