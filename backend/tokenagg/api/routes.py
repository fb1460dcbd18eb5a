import datetime

from fastapi import APIRouter, Body, Request

from tokenagg.aggregation.aggregator import aggregate
from tokenagg.config.settings import settings
from tokenagg.errors import BadRequestError
from tokenagg.schemas.payment import PaymentStats
from tokenagg.schemas.provider import ALL_SOURCES
from tokenagg.schemas.token import AggregatedRecord, TokenDataRequest

router = APIRouter()

TOKEN_DATA_PATH = "/api/token-data"
PAYMENT_STATS_PATH = "/api/payment-stats"
USAGE = "GET /api/token-data?token=ARB&sources=coingecko,etherscan"
AVAILABLE_ENDPOINTS = ["/", "/health", TOKEN_DATA_PATH, PAYMENT_STATS_PATH]


async def _aggregate_request(
    request: Request, token: str | None, sources: str | list[str] | None
) -> AggregatedRecord:
    if not token or not token.strip():
        raise BadRequestError(
            "Missing required parameter: token",
            hint="Pass a token symbol, name or contract address",
            context={"usage": USAGE},
        )
    client = getattr(request.app.state, "http_client", None)
    return await aggregate(token, sources, client=client)


@router.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "service": settings.service_name,
        "version": settings.service_version,
        "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
    }


@router.get("/")
def root(request: Request) -> dict:
    gate = request.app.state.payment_gate
    return {
        "service": "Token Data Aggregator",
        "version": settings.service_version,
        "description": (
            "Aggregates token data from CoinGecko, Etherscan, CoinMarketCap, and DefiLlama"
        ),
        "payment_required": gate.config.require_payment,
        "endpoints": {
            "main": {
                "path": TOKEN_DATA_PATH,
                "method": "GET or POST",
                "parameters": {
                    "token": "Token symbol, name, or contract address (required)",
                    "sources": "Comma-separated list of sources (optional, defaults to all)",
                },
                "example": f"{TOKEN_DATA_PATH}?token=ARB&sources=coingecko,etherscan",
            },
            "health": {"path": "/health", "method": "GET"},
            "payment_stats": {"path": PAYMENT_STATS_PATH, "method": "GET"},
        },
        "sources": ALL_SOURCES,
        "pricing": {
            path: price.model_dump() for path, price in gate.config.pricing.items()
        },
        "cache_duration_seconds": settings.provider_cache_ttl_seconds,
    }


@router.get(TOKEN_DATA_PATH, response_model=AggregatedRecord)
async def token_data(
    request: Request, token: str | None = None, sources: str | None = None
) -> AggregatedRecord:
    return await _aggregate_request(request, token, sources)


@router.post(TOKEN_DATA_PATH, response_model=AggregatedRecord)
async def token_data_post(
    request: Request,
    token: str | None = None,
    sources: str | None = None,
    payload: TokenDataRequest | None = Body(default=None),
) -> AggregatedRecord:
    # Query string wins over the JSON body.
    body = payload or TokenDataRequest()
    return await _aggregate_request(request, token or body.token, sources or body.sources)


@router.get(PAYMENT_STATS_PATH, response_model=PaymentStats)
def payment_stats(request: Request) -> PaymentStats:
    return request.app.state.payment_gate.stats()
