from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class EndpointPrice(BaseModel):
    amount: float
    currency: str = "USDC"
    description: str = ""


class ProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOKENAGG_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    etherscan_base_url: str = "https://api.etherscan.io/v2/api"
    coinmarketcap_base_url: str = "https://pro-api.coinmarketcap.com/v1"
    defillama_base_url: str = "https://coins.llama.fi"

    etherscan_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ETHERSCAN_API_KEY", "TOKENAGG_ETHERSCAN_API_KEY"),
    )
    coinmarketcap_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CMC_API_KEY", "TOKENAGG_COINMARKETCAP_API_KEY"),
    )

    etherscan_chain_id: int = 1
    chain: str = "ethereum"
    description_max_chars: int = 500
    timeout_seconds: float = 10.0


class PaymentSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOKENAGG_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    require_payment: bool = Field(
        default=False,
        validation_alias=AliasChoices("X402_REQUIRE_PAYMENT", "TOKENAGG_REQUIRE_PAYMENT"),
    )
    facilitator_address: str = Field(
        default="NOT_SET",
        validation_alias=AliasChoices(
            "X402_FACILITATOR_ADDRESS", "TOKENAGG_FACILITATOR_ADDRESS"
        ),
    )
    network: str = Field(
        default="base",
        validation_alias=AliasChoices("X402_PAYMENT_NETWORK", "TOKENAGG_PAYMENT_NETWORK"),
    )
    replay_window_seconds: float = 300.0
    reference_prefix: str = "req"
    documentation_url: str = "https://x402.org/docs"
    exempt_paths: List[str] = Field(
        default_factory=lambda: [
            "/",
            "/health",
            "/llms.txt",
            "/favicon.ico",
            "/api/payment-stats",
        ]
    )
    pricing: Dict[str, EndpointPrice] = Field(
        default_factory=lambda: {
            "/api/token-data": EndpointPrice(
                amount=0.025,
                currency="USDC",
                description="Token data aggregation from 4 sources",
            ),
        }
    )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOKENAGG_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    service_name: str = "token-data-aggregator"
    service_version: str = "1.0.0"

    redis_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("REDIS_URL", "TOKENAGG_REDIS_URL"),
    )
    provider_cache_ttl_seconds: int = 300
    provider_cache_error_ttl_seconds: int = 60

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "TOKENAGG_LOG_LEVEL"),
    )
    log_format: str = Field(
        default="json",
        validation_alias=AliasChoices("LOG_FORMAT", "TOKENAGG_LOG_FORMAT"),
    )

    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)


settings = Settings()
