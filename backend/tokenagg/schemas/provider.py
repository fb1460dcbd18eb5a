from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


COINGECKO = "coingecko"
ETHERSCAN = "etherscan"
COINMARKETCAP = "coinmarketcap"
DEFILLAMA = "defillama"

ALL_SOURCES: list[str] = [COINGECKO, ETHERSCAN, COINMARKETCAP, DEFILLAMA]


class CoinGeckoData(BaseModel):
    id: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    contract_address: Optional[str] = None

    current_price_usd: Optional[float] = None
    price_change_24h_percentage: Optional[float] = None
    price_change_7d_percentage: Optional[float] = None
    price_change_30d_percentage: Optional[float] = None

    market_cap_usd: Optional[float] = None
    market_cap_rank: Optional[int] = None
    fully_diluted_valuation_usd: Optional[float] = None
    fdv_to_market_cap_ratio: Optional[float] = None

    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    circulating_supply: Optional[float] = None
    circulating_supply_percentage: Optional[float] = None

    trading_volume_24h_usd: Optional[float] = None
    volume_to_market_cap_ratio: Optional[float] = None

    all_time_high_usd: Optional[float] = None
    all_time_high_date: Optional[str] = None
    ath_change_percentage: Optional[float] = None
    all_time_low_usd: Optional[float] = None
    all_time_low_date: Optional[str] = None

    categories: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    homepage: Optional[str] = None
    blockchain_site: Optional[str] = None
    twitter_handle: Optional[str] = None
    telegram_channel: Optional[str] = None
    last_updated: Optional[str] = None


class EtherscanData(BaseModel):
    contract_address: str
    token_name: Optional[str] = None
    token_symbol: Optional[str] = None
    decimals: Optional[int] = None
    total_supply_raw: Optional[str] = None
    total_supply: Optional[int] = None
    contract_verified: bool = False
    etherscan_url: str


class CoinMarketCapData(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    slug: Optional[str] = None
    cmc_rank: Optional[int] = None

    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None

    price_usd: Optional[float] = None
    volume_24h_usd: Optional[float] = None
    volume_change_24h: Optional[float] = None
    percent_change_1h: Optional[float] = None
    percent_change_24h: Optional[float] = None
    percent_change_7d: Optional[float] = None
    percent_change_30d: Optional[float] = None
    market_cap_usd: Optional[float] = None
    market_cap_dominance: Optional[float] = None
    fully_diluted_market_cap: Optional[float] = None

    last_updated: Optional[str] = None
    date_added: Optional[str] = None
    coinmarketcap_url: Optional[str] = None


class DefiLlamaData(BaseModel):
    price_usd: Optional[float] = None
    symbol: Optional[str] = None
    timestamp: Optional[int] = None
    confidence: Optional[float] = None
    defillama_url: str


ProviderData = Union[CoinGeckoData, EtherscanData, CoinMarketCapData, DefiLlamaData]


class AvailableResult(BaseModel):
    source: str
    available: Literal[True] = True
    data: ProviderData
    error: None = None


class UnavailableResult(BaseModel):
    source: str
    available: Literal[False] = False
    data: None = None
    error: Optional[str] = None


SourceResult = Union[AvailableResult, UnavailableResult]


def unavailable(source: str, reason: str | None) -> UnavailableResult:
    return UnavailableResult(source=source, error=reason)
