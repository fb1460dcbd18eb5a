"""
CoinGecko adapter.

Resolves a free-form identifier (symbol, name or contract address) through
the search endpoint, then normalizes the coin detail record. This is the
identity source: its contract address and symbol feed the other adapters.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from tokenagg.cache import get_result, store
from tokenagg.config.settings import settings
from tokenagg.errors import NotFoundError, ProviderError
from tokenagg.logger import get_logger
from tokenagg.providers.http import get_json
from tokenagg.schemas.provider import (
    COINGECKO,
    AvailableResult,
    CoinGeckoData,
    SourceResult,
    unavailable,
)

logger = get_logger(__name__)

_DETAIL_PARAMS = {
    "localization": "false",
    "tickers": "false",
    "community_data": "false",
    "developer_data": "false",
}


class _SearchCoin(BaseModel):
    id: str
    symbol: Optional[str] = None
    name: Optional[str] = None


class _SearchResponse(BaseModel):
    coins: Optional[list[_SearchCoin]] = None


class _MarketData(BaseModel):
    current_price: Optional[dict[str, Optional[float]]] = None
    price_change_percentage_24h: Optional[float] = None
    price_change_percentage_7d: Optional[float] = None
    price_change_percentage_30d: Optional[float] = None
    market_cap: Optional[dict[str, Optional[float]]] = None
    fully_diluted_valuation: Optional[dict[str, Optional[float]]] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_volume: Optional[dict[str, Optional[float]]] = None
    ath: Optional[dict[str, Optional[float]]] = None
    ath_date: Optional[dict[str, Optional[str]]] = None
    ath_change_percentage: Optional[dict[str, Optional[float]]] = None
    atl: Optional[dict[str, Optional[float]]] = None
    atl_date: Optional[dict[str, Optional[str]]] = None


class _Links(BaseModel):
    homepage: Optional[list[Optional[str]]] = None
    blockchain_site: Optional[list[Optional[str]]] = None
    twitter_screen_name: Optional[str] = None
    telegram_channel_identifier: Optional[str] = None


class _CoinDetail(BaseModel):
    id: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    platforms: Optional[dict[str, Optional[str]]] = None
    market_cap_rank: Optional[int] = None
    market_data: Optional[_MarketData] = None
    categories: Optional[list[Optional[str]]] = None
    description: Optional[dict[str, Optional[str]]] = None
    links: Optional[_Links] = None
    last_updated: Optional[str] = None


def _ratio(numerator: float | None, denominator: float | None, digits: int) -> float | None:
    if numerator is None or denominator is None or denominator == 0:
        return None
    return round(numerator / denominator, digits)


def _usd(values: dict | None):
    return values.get("usd") if values else None


def _first(values: list[Optional[str]] | None) -> str | None:
    for value in values or []:
        if value:
            return value
    return None


def select_coin_id(identifier: str, coins: list[_SearchCoin] | None) -> str | None:
    """Exact case-insensitive symbol match wins, otherwise the first hit."""
    if not coins:
        return None
    wanted = identifier.lower()
    for coin in coins:
        if (coin.symbol or "").lower() == wanted:
            return coin.id
    return coins[0].id


def normalize_detail(detail: _CoinDetail) -> CoinGeckoData:
    market = detail.market_data or _MarketData()
    links = detail.links or _Links()
    market_cap = _usd(market.market_cap)
    fdv = _usd(market.fully_diluted_valuation)
    volume = _usd(market.total_volume)
    circulating = market.circulating_supply
    total = market.total_supply
    circulating_pct = None
    if circulating is not None and total:
        circulating_pct = round(circulating / total * 100, 2)
    description = (detail.description or {}).get("en") or None
    if description:
        description = description[: settings.providers.description_max_chars]

    return CoinGeckoData(
        id=detail.id,
        symbol=detail.symbol.upper() if detail.symbol else None,
        name=detail.name,
        contract_address=(detail.platforms or {}).get(settings.providers.chain) or None,
        current_price_usd=_usd(market.current_price),
        price_change_24h_percentage=market.price_change_percentage_24h,
        price_change_7d_percentage=market.price_change_percentage_7d,
        price_change_30d_percentage=market.price_change_percentage_30d,
        market_cap_usd=market_cap,
        market_cap_rank=detail.market_cap_rank,
        fully_diluted_valuation_usd=fdv,
        fdv_to_market_cap_ratio=_ratio(fdv, market_cap, 2),
        total_supply=total,
        max_supply=market.max_supply,
        circulating_supply=circulating,
        circulating_supply_percentage=circulating_pct,
        trading_volume_24h_usd=volume,
        volume_to_market_cap_ratio=_ratio(volume, market_cap, 4),
        all_time_high_usd=_usd(market.ath),
        all_time_high_date=_usd(market.ath_date),
        ath_change_percentage=_usd(market.ath_change_percentage),
        all_time_low_usd=_usd(market.atl),
        all_time_low_date=_usd(market.atl_date),
        categories=[category for category in detail.categories or [] if category],
        description=description,
        homepage=_first(links.homepage),
        blockchain_site=_first(links.blockchain_site),
        twitter_handle=links.twitter_screen_name or None,
        telegram_channel=links.telegram_channel_identifier or None,
        last_updated=detail.last_updated,
    )


async def _fetch(identifier: str, client: httpx.AsyncClient) -> CoinGeckoData:
    base_url = settings.providers.coingecko_base_url.rstrip("/")
    search = _SearchResponse.model_validate(
        await get_json(
            client,
            f"{base_url}/search",
            "CoinGecko search",
            params={"query": identifier},
        )
    )
    coin_id = select_coin_id(identifier, search.coins)
    if coin_id is None:
        raise NotFoundError("Token not found on CoinGecko")

    detail = _CoinDetail.model_validate(
        await get_json(
            client,
            f"{base_url}/coins/{quote(coin_id, safe='')}",
            "CoinGecko detail fetch",
            params=_DETAIL_PARAMS,
        )
    )
    return normalize_detail(detail)


async def fetch_token(identifier: str, client: httpx.AsyncClient) -> SourceResult:
    cache_key = f"{COINGECKO}:{identifier.lower()}"
    cached = await get_result(cache_key, CoinGeckoData)
    if cached:
        return cached

    try:
        data = await _fetch(identifier, client)
    except (ProviderError, httpx.HTTPError, ValidationError, ValueError) as exc:
        logger.warning("provider_unavailable", source=COINGECKO, reason=str(exc))
        return await store(cache_key, unavailable(COINGECKO, str(exc)))

    return await store(cache_key, AvailableResult(source=COINGECKO, data=data))
