from __future__ import annotations

import datetime
from typing import Optional

from pydantic import BaseModel, Field

from tokenagg.schemas.provider import SourceResult


class QueryInfo(BaseModel):
    token_identifier: str
    timestamp: datetime.datetime
    response_time_ms: int
    sources_requested: list[str] = Field(default_factory=list)
    sources_succeeded: list[str] = Field(default_factory=list)


class TokenInfo(BaseModel):
    name: Optional[str] = None
    symbol: Optional[str] = None
    contract_address: Optional[str] = None
    blockchain: str = "ethereum"


class AggregatedValues(BaseModel):
    price_usd: Optional[float] = None
    market_cap_usd: Optional[float] = None
    fully_diluted_valuation_usd: Optional[float] = None
    trading_volume_24h_usd: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None


class JobMetadata(BaseModel):
    job_name: str
    job_version: str
    x402_compatible: bool = True
    cache_recommended_seconds: int = 300
    next_job_suggestions: list[str] = Field(
        default_factory=lambda: [
            "token-unlock-analyzer",
            "whale-wallet-monitor",
            "technical-analysis",
            "sentiment-analyzer",
        ]
    )


class AggregatedRecord(BaseModel):
    query: QueryInfo
    token_info: TokenInfo
    sources: dict[str, SourceResult]
    aggregated: AggregatedValues
    metadata: JobMetadata


class TokenDataRequest(BaseModel):
    token: Optional[str] = None
    sources: Optional[str | list[str]] = None
