from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from tokenagg.cache import get_result, store
from tokenagg.config.settings import settings
from tokenagg.errors import NotConfiguredError, NotFoundError, ProviderError
from tokenagg.logger import get_logger
from tokenagg.providers.http import get_json
from tokenagg.schemas.provider import (
    ETHERSCAN,
    AvailableResult,
    EtherscanData,
    SourceResult,
    unavailable,
)

logger = get_logger(__name__)


class _Envelope(BaseModel):
    status: str = "0"
    message: Optional[str] = None
    result: Any = None


class _TokenInfo(BaseModel):
    contract_address: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("contractAddress", "contract_address")
    )
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("tokenName", "name"))
    symbol: Optional[str] = None
    decimals: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("divisor", "decimals")
    )


def _token_url(contract_address: str) -> str:
    return f"https://etherscan.io/token/{contract_address}"


def scale_supply(raw_supply: str | None, decimals: int | None) -> int | None:
    """Integer supply divided by 10**decimals, truncated."""
    if raw_supply is None or decimals is None:
        return None
    return int(raw_supply) // (10**decimals)


async def _call(client: httpx.AsyncClient, params: dict[str, str]) -> _Envelope:
    query = {
        "chainid": str(settings.providers.etherscan_chain_id),
        **params,
        "apikey": settings.providers.etherscan_api_key or "",
    }
    payload = await get_json(
        client, settings.providers.etherscan_base_url, "Etherscan fetch", params=query
    )
    return _Envelope.model_validate(payload)


async def _fetch(contract_address: str, client: httpx.AsyncClient) -> EtherscanData:
    if not settings.providers.etherscan_api_key:
        raise NotConfiguredError("Etherscan API key not configured")

    info_envelope = await _call(
        client,
        {"module": "token", "action": "tokeninfo", "contractaddress": contract_address},
    )
    if info_envelope.status != "1":
        raise NotFoundError(info_envelope.message or "Token info not available")

    raw_info = info_envelope.result
    if isinstance(raw_info, list):
        raw_info = raw_info[0] if raw_info else {}
    token_info = _TokenInfo.model_validate(raw_info or {})

    supply_envelope = await _call(
        client,
        {"module": "stats", "action": "tokensupply", "contractaddress": contract_address},
    )
    total_supply_raw = None
    if supply_envelope.status == "1" and supply_envelope.result is not None:
        total_supply_raw = str(supply_envelope.result)

    return EtherscanData(
        contract_address=contract_address,
        token_name=token_info.name,
        token_symbol=token_info.symbol,
        decimals=token_info.decimals,
        total_supply_raw=total_supply_raw,
        total_supply=scale_supply(total_supply_raw, token_info.decimals),
        contract_verified=bool(token_info.contract_address),
        etherscan_url=_token_url(contract_address),
    )


async def fetch_token(contract_address: str | None, client: httpx.AsyncClient) -> SourceResult:
    if not contract_address:
        return unavailable(ETHERSCAN, "No contract address provided")

    cache_key = f"{ETHERSCAN}:{contract_address.lower()}"
    cached = await get_result(cache_key, EtherscanData)
    if cached:
        return cached

    try:
        data = await _fetch(contract_address, client)
    except (ProviderError, httpx.HTTPError, ValidationError, ValueError) as exc:
        logger.warning("provider_unavailable", source=ETHERSCAN, reason=str(exc))
        return await store(cache_key, unavailable(ETHERSCAN, str(exc)))

    return await store(cache_key, AvailableResult(source=ETHERSCAN, data=data))
