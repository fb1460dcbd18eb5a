"""
Field-level merge of per-source results.

MERGE_PRIORITY names, for every merged field, the (source, attribute) pairs to
consult in order. The first non-null value from an available source wins.
"""

from __future__ import annotations

from typing import Mapping

from tokenagg.schemas.provider import (
    COINGECKO,
    COINMARKETCAP,
    DEFILLAMA,
    ETHERSCAN,
    SourceResult,
)
from tokenagg.schemas.token import AggregatedValues

MERGE_PRIORITY: dict[str, tuple[tuple[str, str], ...]] = {
    "price_usd": (
        (COINGECKO, "current_price_usd"),
        (COINMARKETCAP, "price_usd"),
        (DEFILLAMA, "price_usd"),
    ),
    "market_cap_usd": (
        (COINGECKO, "market_cap_usd"),
        (COINMARKETCAP, "market_cap_usd"),
    ),
    "fully_diluted_valuation_usd": (
        (COINGECKO, "fully_diluted_valuation_usd"),
        (COINMARKETCAP, "fully_diluted_market_cap"),
    ),
    "trading_volume_24h_usd": (
        (COINGECKO, "trading_volume_24h_usd"),
        (COINMARKETCAP, "volume_24h_usd"),
    ),
    "circulating_supply": (
        (COINGECKO, "circulating_supply"),
        (COINMARKETCAP, "circulating_supply"),
    ),
    "total_supply": (
        (COINGECKO, "total_supply"),
        (ETHERSCAN, "total_supply"),
        (COINMARKETCAP, "total_supply"),
    ),
    "max_supply": (
        (COINGECKO, "max_supply"),
        (COINMARKETCAP, "max_supply"),
    ),
}


def pick(results: Mapping[str, SourceResult], priority: tuple[tuple[str, str], ...]):
    for source, attribute in priority:
        result = results.get(source)
        if result is None or not result.available:
            continue
        value = getattr(result.data, attribute, None)
        if value is not None:
            return value
    return None


def merge_fields(results: Mapping[str, SourceResult]) -> AggregatedValues:
    return AggregatedValues(
        **{field: pick(results, priority) for field, priority in MERGE_PRIORITY.items()}
    )
