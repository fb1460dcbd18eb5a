from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from tokenagg.cache import get_result, store
from tokenagg.config.settings import settings
from tokenagg.errors import NotConfiguredError, NotFoundError, ProviderError, UpstreamError
from tokenagg.logger import get_logger
from tokenagg.providers.http import get_json
from tokenagg.schemas.provider import (
    COINMARKETCAP,
    AvailableResult,
    CoinMarketCapData,
    SourceResult,
    unavailable,
)

logger = get_logger(__name__)

_QUOTES_PATH = "/cryptocurrency/quotes/latest"


class _Status(BaseModel):
    error_code: Optional[int] = None
    error_message: Optional[str] = None


class _UsdQuote(BaseModel):
    price: Optional[float] = None
    volume_24h: Optional[float] = None
    volume_change_24h: Optional[float] = None
    percent_change_1h: Optional[float] = None
    percent_change_24h: Optional[float] = None
    percent_change_7d: Optional[float] = None
    percent_change_30d: Optional[float] = None
    market_cap: Optional[float] = None
    market_cap_dominance: Optional[float] = None
    fully_diluted_market_cap: Optional[float] = None
    last_updated: Optional[str] = None


class _Listing(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    slug: Optional[str] = None
    cmc_rank: Optional[int] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    date_added: Optional[str] = None
    quote: Optional[dict[str, _UsdQuote]] = None


class _QuotesResponse(BaseModel):
    status: Optional[_Status] = None
    data: Optional[dict[str, _Listing]] = None


def normalize_listing(listing: _Listing) -> CoinMarketCapData:
    usd = (listing.quote or {}).get("USD") or _UsdQuote()
    return CoinMarketCapData(
        id=listing.id,
        name=listing.name,
        symbol=listing.symbol,
        slug=listing.slug,
        cmc_rank=listing.cmc_rank,
        circulating_supply=listing.circulating_supply,
        total_supply=listing.total_supply,
        max_supply=listing.max_supply,
        price_usd=usd.price,
        volume_24h_usd=usd.volume_24h,
        volume_change_24h=usd.volume_change_24h,
        percent_change_1h=usd.percent_change_1h,
        percent_change_24h=usd.percent_change_24h,
        percent_change_7d=usd.percent_change_7d,
        percent_change_30d=usd.percent_change_30d,
        market_cap_usd=usd.market_cap,
        market_cap_dominance=usd.market_cap_dominance,
        fully_diluted_market_cap=usd.fully_diluted_market_cap,
        last_updated=usd.last_updated,
        date_added=listing.date_added,
        coinmarketcap_url=(
            f"https://coinmarketcap.com/currencies/{listing.slug}/" if listing.slug else None
        ),
    )


async def _fetch(symbol: str, client: httpx.AsyncClient) -> CoinMarketCapData:
    api_key = settings.providers.coinmarketcap_api_key
    if not api_key:
        raise NotConfiguredError("CoinMarketCap API key not configured")

    base_url = settings.providers.coinmarketcap_base_url.rstrip("/")
    payload = await get_json(
        client,
        f"{base_url}{_QUOTES_PATH}",
        "CoinMarketCap fetch",
        params={"symbol": symbol},
        headers={"X-CMC_PRO_API_KEY": api_key},
    )
    response = _QuotesResponse.model_validate(payload)

    status = response.status or _Status()
    if status.error_code != 0:
        raise UpstreamError(status.error_message or "Unknown error")

    listing = (response.data or {}).get(symbol)
    if listing is None:
        raise NotFoundError("Token not found")
    return normalize_listing(listing)


async def fetch_token(symbol: str, client: httpx.AsyncClient) -> SourceResult:
    symbol = symbol.upper()
    cache_key = f"{COINMARKETCAP}:{symbol}"
    cached = await get_result(cache_key, CoinMarketCapData)
    if cached:
        return cached

    try:
        data = await _fetch(symbol, client)
    except (ProviderError, httpx.HTTPError, ValidationError, ValueError) as exc:
        logger.warning("provider_unavailable", source=COINMARKETCAP, reason=str(exc))
        return await store(cache_key, unavailable(COINMARKETCAP, str(exc)))

    return await store(cache_key, AvailableResult(source=COINMARKETCAP, data=data))
