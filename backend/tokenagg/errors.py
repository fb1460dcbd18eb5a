from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import status


class ProviderError(Exception):
    """Raised inside an adapter; always converted to an unavailable result."""


class NotFoundError(ProviderError):
    pass


class NotConfiguredError(ProviderError):
    pass


class UpstreamError(ProviderError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServiceError(Exception):
    """Base for errors that reach the caller as a structured JSON body."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.hint is not None:
            body["hint"] = self.hint
        body.update(self.context)
        return body


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"


class InvalidProofError(ServiceError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "invalid_payment"


class InternalError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"


class PaymentRequiredError(ServiceError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "payment_required"
