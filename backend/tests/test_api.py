import datetime
import json
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from tokenagg.config.settings import PaymentSettings
from tokenagg.errors import InternalError
from tokenagg.main import create_app
from tokenagg.schemas.provider import (
    COINGECKO,
    AvailableResult,
    CoinGeckoData,
    unavailable,
)
from tokenagg.schemas.token import (
    AggregatedRecord,
    AggregatedValues,
    JobMetadata,
    QueryInfo,
    TokenInfo,
)

USAGE = "GET /api/token-data?token=ARB&sources=coingecko,etherscan"


def _record() -> AggregatedRecord:
    return AggregatedRecord(
        query=QueryInfo(
            token_identifier="ARB",
            timestamp=datetime.datetime(2026, 10, 18, tzinfo=datetime.UTC),
            response_time_ms=12,
            sources_requested=[COINGECKO],
            sources_succeeded=[COINGECKO],
        ),
        token_info=TokenInfo(name="Arbitrum", symbol="ARB"),
        sources={
            COINGECKO: AvailableResult(
                source=COINGECKO,
                data=CoinGeckoData(id="arbitrum", symbol="ARB", current_price_usd=1.25),
            ),
            "etherscan": unavailable("etherscan", "not requested"),
        },
        aggregated=AggregatedValues(price_usd=1.25),
        metadata=JobMetadata(job_name="token-data-aggregator", job_version="1.0.0"),
    )


def _client(require_payment: bool = False) -> TestClient:
    return TestClient(create_app(PaymentSettings(require_payment=require_payment)))


def test_health() -> None:
    with _client() as client:
        response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "token-data-aggregator"


def test_root_describes_service() -> None:
    with _client(require_payment=True) as client:
        response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["payment_required"] is True
    assert body["sources"] == ["coingecko", "etherscan", "coinmarketcap", "defillama"]
    assert body["pricing"]["/api/token-data"]["amount"] == 0.025


def test_missing_token_is_bad_request() -> None:
    with _client() as client:
        for url in (
            "/api/token-data",
            "/api/token-data?sources=coingecko",
            "/api/token-data?token=%20",
        ):
            response = client.get(url)
            assert response.status_code == 400
            body = response.json()
            assert body["error"] == "bad_request"
            assert body["message"] == "Missing required parameter: token"
            assert body["usage"] == USAGE


def test_post_without_token_is_bad_request() -> None:
    with _client() as client:
        response = client.post("/api/token-data", json={"sources": "coingecko"})

    assert response.status_code == 400
    assert response.json()["usage"] == USAGE


def test_get_token_data() -> None:
    with patch("tokenagg.api.routes.aggregate", AsyncMock(return_value=_record())) as aggregate:
        with _client() as client:
            response = client.get(
                "/api/token-data", params={"token": "ARB", "sources": "coingecko"}
            )

    assert response.status_code == 200
    body = response.json()
    assert body["aggregated"]["price_usd"] == 1.25
    assert body["sources"]["coingecko"]["data"]["current_price_usd"] == 1.25
    assert body["sources"]["etherscan"] == {
        "source": "etherscan",
        "available": False,
        "data": None,
        "error": "not requested",
    }
    args, kwargs = aggregate.call_args
    assert args == ("ARB", "coingecko")
    assert kwargs["client"] is not None


def test_post_token_data_prefers_query_string() -> None:
    with patch("tokenagg.api.routes.aggregate", AsyncMock(return_value=_record())) as aggregate:
        with _client() as client:
            body_only = client.post(
                "/api/token-data", json={"token": "ARB", "sources": ["coingecko", "defillama"]}
            )
            overridden = client.post("/api/token-data?token=OP", json={"token": "ARB"})

    assert body_only.status_code == 200
    assert overridden.status_code == 200
    first, second = aggregate.call_args_list
    assert first.args == ("ARB", ["coingecko", "defillama"])
    assert second.args == ("OP", None)


def test_payment_flow() -> None:
    proof = json.dumps({"reference": "req-1760781600000-abc123xyz", "amount": 0.025})

    with patch("tokenagg.api.routes.aggregate", AsyncMock(return_value=_record())):
        with _client(require_payment=True) as client:
            unpaid = client.get("/api/token-data?token=ARB")
            paid = client.get("/api/token-data?token=ARB", headers={"X-Payment": proof})
            replayed = client.get("/api/token-data?token=ARB", headers={"X-Payment": proof})
            stats = client.get("/api/payment-stats")

    assert unpaid.status_code == 402
    assert unpaid.json()["error"] == "payment_required"
    assert unpaid.json()["payment"]["currency"] == "USDC"

    assert paid.status_code == 200

    assert replayed.status_code == 402
    assert replayed.json()["error"] == "invalid_payment"
    assert replayed.json()["message"] == "Payment already used"

    assert stats.status_code == 200
    assert stats.json()["total_payments"] == 1
    assert stats.json()["require_payment"] is True


def test_payment_not_required_when_disabled() -> None:
    with patch("tokenagg.api.routes.aggregate", AsyncMock(return_value=_record())):
        with _client(require_payment=False) as client:
            response = client.get("/api/token-data?token=ARB")

    assert response.status_code == 200


def test_unknown_path() -> None:
    with _client() as client:
        response = client.get("/api/nope")

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "not_found"
    assert body["path"] == "/api/nope"
    assert "/api/token-data" in body["available_endpoints"]


def test_aggregation_failure_is_internal_error() -> None:
    failure = InternalError("Token aggregation failed", context={"detail": "boom"})
    with patch("tokenagg.api.routes.aggregate", AsyncMock(side_effect=failure)):
        with _client() as client:
            response = client.get("/api/token-data?token=ARB")

    assert response.status_code == 500
    assert response.json() == {
        "error": "internal_error",
        "message": "Token aggregation failed",
        "detail": "boom",
    }
