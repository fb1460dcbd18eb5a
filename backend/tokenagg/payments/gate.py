"""
x402 payment gate.

Decides, per request, whether a priced endpoint may be served: exempt paths
and a disabled gate always pass; otherwise the caller gets a quote (no proof)
or the proof is checked against the replay cache and the verifier.
"""

from __future__ import annotations

import datetime
import json
import re
import secrets
import string
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from fastapi import status
from pydantic import ValidationError

from tokenagg.config.settings import EndpointPrice, PaymentSettings
from tokenagg.errors import InvalidProofError, PaymentRequiredError
from tokenagg.logger import get_logger
from tokenagg.payments.replay_cache import ReplayCache
from tokenagg.payments.verifier import PaymentVerifier, WellFormedProofVerifier
from tokenagg.schemas.payment import (
    PaymentInstructions,
    PaymentProof,
    PaymentQuote,
    PaymentStats,
    QuoteMetadata,
    VerificationResult,
)

logger = get_logger(__name__)

PAYMENT_HEADERS = ("x-payment", "x-payment-proof")
_REFERENCE_ALPHABET = string.digits + string.ascii_lowercase


def reference_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}-\d{{13}}-[0-9a-z]{{9}}$")


def new_reference(prefix: str) -> str:
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


@dataclass(frozen=True)
class GateDecision:
    admitted: bool
    status_code: int = status.HTTP_200_OK
    body: dict[str, Any] = field(default_factory=dict)
    proof: PaymentProof | None = None


class PaymentGate:
    def __init__(
        self,
        config: PaymentSettings,
        cache: ReplayCache,
        verifier: PaymentVerifier | None = None,
    ) -> None:
        self.config = config
        self.cache = cache
        self.verifier = verifier or WellFormedProofVerifier()

    def is_exempt(self, path: str) -> bool:
        return path in self.config.exempt_paths

    def price_for(self, path: str) -> EndpointPrice | None:
        return self.config.pricing.get(path)

    def quote(self, path: str, query: Mapping[str, str] | None = None) -> PaymentQuote | None:
        """Fresh quote for a priced path. Quotes reserve nothing."""
        price = self.price_for(path)
        if price is None:
            return None
        return PaymentQuote(
            amount=price.amount,
            currency=price.currency,
            network=self.config.network,
            recipient=self.config.facilitator_address,
            reference=new_reference(self.config.reference_prefix),
            description=price.description,
            instructions=PaymentInstructions(documentation=self.config.documentation_url),
            metadata=QuoteMetadata(
                endpoint=path,
                query=dict(query or {}),
                timestamp=datetime.datetime.now(datetime.UTC),
            ),
        )

    async def verify(self, raw_proof: str) -> VerificationResult:
        try:
            payload = json.loads(raw_proof)
        except ValueError as exc:
            return VerificationResult(valid=False, error=f"Malformed payment proof: {exc}")
        if not isinstance(payload, dict):
            return VerificationResult(valid=False, error="Payment proof must be a JSON object")

        try:
            proof = PaymentProof.model_validate(payload)
        except ValidationError as exc:
            return VerificationResult(valid=False, error=f"Malformed payment proof: {exc}")

        key = proof.cache_key
        if not key:
            return VerificationResult(
                valid=False, proof=proof, error="Payment proof is missing a reference"
            )

        if not self.cache.reserve(key, payload):
            return VerificationResult(valid=False, proof=proof, error="Payment already used")

        confirmed = False
        try:
            await self.verifier.verify(proof)
            confirmed = True
        except InvalidProofError as exc:
            return VerificationResult(valid=False, proof=proof, error=exc.message)
        finally:
            if not confirmed:
                self.cache.release(key)

        self.cache.sweep()
        return VerificationResult(valid=True, proof=proof)

    async def admit(
        self,
        path: str,
        headers: Mapping[str, str],
        query: Mapping[str, str] | None = None,
    ) -> GateDecision:
        if self.is_exempt(path):
            return GateDecision(admitted=True)

        if not self.config.require_payment:
            logger.debug("payment_check_disabled", path=path)
            return GateDecision(admitted=True)

        if self.price_for(path) is None:
            return GateDecision(admitted=True)

        lowered = {key.lower(): value for key, value in headers.items()}
        raw_proof = next((lowered[name] for name in PAYMENT_HEADERS if lowered.get(name)), None)

        if not raw_proof:
            quote = self.quote(path, query)
            error = PaymentRequiredError(
                "This endpoint requires payment via x402 protocol",
                hint="Pay the quoted amount and retry with the proof in the X-Payment header",
                context={"payment": quote.model_dump(mode="json")},
            )
            return GateDecision(
                admitted=False, status_code=error.status_code, body=error.to_dict()
            )

        result = await self.verify(raw_proof)
        if not result.valid:
            logger.info("payment_rejected", path=path, reason=result.error)
            quote = self.quote(path, query)
            error = InvalidProofError(
                result.error or "Payment verification failed",
                hint="Request a new quote and retry with a fresh payment proof",
                context={"payment": quote.model_dump(mode="json")},
            )
            return GateDecision(
                admitted=False, status_code=error.status_code, body=error.to_dict()
            )

        logger.info("payment_verified", path=path, reference=result.proof.cache_key)
        return GateDecision(admitted=True, proof=result.proof)

    def stats(self) -> PaymentStats:
        return PaymentStats(
            total_payments=len(self.cache),
            require_payment=self.config.require_payment,
            network=self.config.network,
            facilitator_address=self.config.facilitator_address,
            pricing=self.config.pricing,
        )
