from __future__ import annotations

import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from tokenagg.config.settings import EndpointPrice


class PaymentInstructions(BaseModel):
    step1: str = "Complete payment using the details above"
    step2: str = "Include payment proof in X-Payment header"
    step3: str = "Retry the request"
    documentation: str = "https://x402.org/docs"


class QuoteMetadata(BaseModel):
    endpoint: str
    query: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime.datetime


class PaymentQuote(BaseModel):
    version: str = "1.0"
    amount: float
    currency: str
    network: str
    recipient: str
    reference: str
    description: str
    instructions: PaymentInstructions = Field(default_factory=PaymentInstructions)
    metadata: QuoteMetadata


class PaymentProof(BaseModel):
    """Client-supplied proof from the X-Payment header; extra keys are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    reference: Optional[str] = None
    amount: Optional[Any] = None
    tx_hash: Optional[str] = Field(default=None, alias="txHash")

    @property
    def cache_key(self) -> Optional[str]:
        return self.reference or self.tx_hash


class PaymentRecord(BaseModel):
    reference: str
    received_at: float
    proof: dict[str, Any] = Field(default_factory=dict)


class VerificationResult(BaseModel):
    valid: bool
    proof: Optional[PaymentProof] = None
    error: Optional[str] = None


class PaymentStats(BaseModel):
    total_payments: int
    require_payment: bool
    network: str
    facilitator_address: str
    pricing: dict[str, EndpointPrice]
