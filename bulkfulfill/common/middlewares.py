# bulkfulfill/common/middlewares.py
from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from bulkfulfill.common.logging_setup import bind_context, get_correlation_id, set_correlation_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        # Reaproveita X-Request-Id se cliente enviar, senão gera UUID novo
        cid = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        set_correlation_id(cid)
        # Loja informada pelo app embutido (?shop=...) entra no contexto de log
        bind_context(shop=request.query_params.get("shop"))

        response = await call_next(request)

        response.headers["X-Request-Id"] = get_correlation_id()
        return response
