from __future__ import annotations

import asyncio
import datetime
import time
from collections.abc import Awaitable, Callable, Sequence

import httpx

from tokenagg.aggregation.merge import merge_fields
from tokenagg.config.settings import settings
from tokenagg.errors import InternalError
from tokenagg.logger import get_logger
from tokenagg.providers import coingecko, coinmarketcap, defillama, etherscan
from tokenagg.schemas.provider import (
    ALL_SOURCES,
    COINGECKO,
    COINMARKETCAP,
    DEFILLAMA,
    ETHERSCAN,
    CoinGeckoData,
    SourceResult,
    unavailable,
)
from tokenagg.schemas.token import AggregatedRecord, JobMetadata, QueryInfo, TokenInfo

logger = get_logger(__name__)

_NOT_REQUESTED = "not requested"
_NO_CONTRACT = "no contract address resolved"
_NO_SYMBOL = "no symbol resolved"


def parse_sources(raw: str | Sequence[str] | None) -> list[str]:
    """CSV or list of source names; empty or missing means every source."""
    if raw is None:
        return list(ALL_SOURCES)
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    names = [item.strip().lower() for item in items if item and item.strip()]
    return names or list(ALL_SOURCES)


async def _guarded(source: str, call: Callable[[], Awaitable[SourceResult]]) -> SourceResult:
    timeout = settings.providers.timeout_seconds
    try:
        async with asyncio.timeout(timeout):
            return await call()
    except TimeoutError:
        logger.warning("provider_timeout", source=source, timeout_seconds=timeout)
        return unavailable(source, f"timed out after {timeout:g}s")
    except Exception as exc:
        # Adapters are fail-soft; this only catches bugs so siblings keep running.
        logger.exception("provider_crashed", source=source)
        return unavailable(source, str(exc))


def _plan(
    requested: list[str],
    identity: CoinGeckoData | None,
    client: httpx.AsyncClient,
) -> tuple[dict[str, Callable[[], Awaitable[SourceResult]]], dict[str, SourceResult]]:
    contract_address = identity.contract_address if identity else None
    symbol = identity.symbol if identity else None

    calls: dict[str, Callable[[], Awaitable[SourceResult]]] = {}
    skipped: dict[str, SourceResult] = {}

    if ETHERSCAN not in requested:
        skipped[ETHERSCAN] = unavailable(ETHERSCAN, _NOT_REQUESTED)
    elif not contract_address:
        skipped[ETHERSCAN] = unavailable(ETHERSCAN, _NO_CONTRACT)
    else:
        calls[ETHERSCAN] = lambda: etherscan.fetch_token(contract_address, client)

    if COINMARKETCAP not in requested:
        skipped[COINMARKETCAP] = unavailable(COINMARKETCAP, _NOT_REQUESTED)
    elif not symbol:
        skipped[COINMARKETCAP] = unavailable(COINMARKETCAP, _NO_SYMBOL)
    else:
        calls[COINMARKETCAP] = lambda: coinmarketcap.fetch_token(symbol, client)

    if DEFILLAMA not in requested:
        skipped[DEFILLAMA] = unavailable(DEFILLAMA, _NOT_REQUESTED)
    elif not contract_address:
        skipped[DEFILLAMA] = unavailable(DEFILLAMA, _NO_CONTRACT)
    else:
        calls[DEFILLAMA] = lambda: defillama.fetch_token(contract_address, client)

    return calls, skipped


async def _aggregate(
    identifier: str, requested: list[str], client: httpx.AsyncClient
) -> AggregatedRecord:
    started = time.monotonic()

    # 1. Resolve identity first; its contract address feeds the other adapters
    primary = await _guarded(COINGECKO, lambda: coingecko.fetch_token(identifier, client))
    identity = primary.data if primary.available else None

    # 2. Fan out to the remaining eligible adapters and wait for all of them
    calls, skipped = _plan(requested, identity, client)
    async with asyncio.TaskGroup() as group:
        tasks = {
            source: group.create_task(_guarded(source, call)) for source, call in calls.items()
        }
    fetched = {source: task.result() for source, task in tasks.items()}

    # 3. Merge by fixed priority and assemble the record
    results: dict[str, SourceResult] = {COINGECKO: primary}
    for source in ALL_SOURCES[1:]:
        results[source] = fetched.get(source) or skipped[source]

    invoked = [COINGECKO, *[source for source in ALL_SOURCES[1:] if source in fetched]]
    succeeded = [source for source in invoked if results[source].available]
    elapsed_ms = int((time.monotonic() - started) * 1000)

    logger.info(
        "aggregation_completed",
        token=identifier,
        sources_requested=requested,
        sources_succeeded=succeeded,
        elapsed_ms=elapsed_ms,
    )

    return AggregatedRecord(
        query=QueryInfo(
            token_identifier=identifier,
            timestamp=datetime.datetime.now(datetime.UTC),
            response_time_ms=elapsed_ms,
            sources_requested=requested,
            sources_succeeded=succeeded,
        ),
        token_info=TokenInfo(
            name=identity.name if identity else None,
            symbol=identity.symbol if identity else None,
            contract_address=identity.contract_address if identity else None,
            blockchain=settings.providers.chain,
        ),
        sources=results,
        aggregated=merge_fields(results),
        metadata=JobMetadata(
            job_name=settings.service_name,
            job_version=settings.service_version,
            cache_recommended_seconds=settings.provider_cache_ttl_seconds,
        ),
    )


async def aggregate(
    identifier: str,
    sources: str | Sequence[str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> AggregatedRecord:
    """
    Resolve a token through CoinGecko, fan out to the other providers and merge.

    Provider failures never raise; they show up as unavailable entries in
    ``sources`` and as nulls in ``aggregated``. Anything else that goes wrong
    is reported as an InternalError.
    """
    token = identifier.strip()
    requested = parse_sources(sources)
    try:
        if client is not None:
            return await _aggregate(token, requested, client)
        async with httpx.AsyncClient(timeout=settings.providers.timeout_seconds) as owned:
            return await _aggregate(token, requested, owned)
    except Exception as exc:
        logger.exception("aggregation_failed", token=token)
        raise InternalError("Token aggregation failed", context={"detail": str(exc)}) from exc
