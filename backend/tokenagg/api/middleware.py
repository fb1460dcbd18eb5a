from collections.abc import Awaitable, Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from tokenagg.payments.gate import PaymentGate


async def payment_gate_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Run every request through the app's PaymentGate before routing."""
    gate: PaymentGate = request.app.state.payment_gate
    decision = await gate.admit(request.url.path, request.headers, dict(request.query_params))
    if not decision.admitted:
        return JSONResponse(status_code=decision.status_code, content=decision.body)

    # Handlers can read the admitted proof from request.state.payment
    request.state.payment = decision.proof
    return await call_next(request)
