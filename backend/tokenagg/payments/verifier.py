from __future__ import annotations

from typing import Protocol

from tokenagg.errors import InvalidProofError
from tokenagg.schemas.payment import PaymentProof


class PaymentVerifier(Protocol):
    async def verify(self, proof: PaymentProof) -> None:
        """Raise InvalidProofError when the proof does not settle the payment."""
        ...


def _positive_amount(value) -> bool:
    if isinstance(value, bool) or value is None:
        return False
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


class WellFormedProofVerifier:
    """
    Accepts any proof that carries a reference and a positive amount.

    Nothing is checked on-chain. Swap in a verifier that confirms settlement
    (transaction exists, amount and recipient match, confirmed) before taking
    real payments.
    """

    async def verify(self, proof: PaymentProof) -> None:
        if not proof.reference:
            raise InvalidProofError("Payment proof is missing a reference")
        if not _positive_amount(proof.amount):
            raise InvalidProofError("Payment proof is missing a positive amount")
