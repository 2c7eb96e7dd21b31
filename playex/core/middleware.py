"""HTTP middleware for request correlation and admission bookkeeping.

``request_id_middleware``:
- Accepts an incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for log correlation
- Echoes request_id and the request duration in response headers

``admission_outcome_middleware``:
- Finalizes the admission tickets left by rate limit dependencies once the
  response status is known: adds rate-limit headers and reports success or
  failure to limiters that only count some outcomes.

Usage:
    app.middleware("http")(admission_outcome_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from playex.core.config import settings
from playex.core.logging import clear_request_id, set_request_id
from playex.core.rate_limit import pop_admission_tickets


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request, its logs and its response.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def admission_outcome_middleware(request: Request, call_next) -> Response:
    """Report response outcomes to the limiters that admitted the request.

    A route that raises past the exception handlers counts as a failure.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with rate-limit headers added.
    """

    try:
        response: Response = await call_next(request)
    except Exception:
        for ticket in pop_admission_tickets(request):
            ticket.limiter.finalize(ticket, status_code=None)
        raise

    for ticket in pop_admission_tickets(request):
        headers = ticket.limiter.finalize(ticket, status_code=response.status_code)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
    return response
