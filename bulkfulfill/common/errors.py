from __future__ import annotations

from typing import Any


class AppError(Exception):
    """
    Erro base da aplicação.

    - `code`: identificador estável (útil em logs e respostas)
    - `cause`: exceção original, quando houver
    - `retryable`: indica se repetir a chamada pode resolver
    - `data`: contexto extra para logging/diagnóstico
    """

    code: str = "APP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        cause: BaseException | None = None,
        retryable: bool = False,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.cause = cause
        self.retryable = retryable
        self.data = data or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "retryable": self.retryable, "data": self.data}


# ---------------------------
# Entrada do lote
# ---------------------------
class BatchInputError(AppError):
    """Arquivo ausente/ilegível. Único erro que aborta o lote inteiro."""

    code = "BATCH_INPUT"


class MalformedRowError(AppError):
    """Linha sem referência de pedido."""

    code = "MALFORMED_ROW"


# ---------------------------
# Resolução de pedido / fulfillment orders
# ---------------------------
class OrderNotFoundError(AppError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_name: str = "", **kwargs: Any) -> None:
        kwargs.setdefault("data", {"order_name": order_name})
        super().__init__("Order not found", **kwargs)


class AmbiguousOrderError(AppError):
    code = "ORDER_AMBIGUOUS"

    def __init__(self, order_name: str, matches: int) -> None:
        super().__init__(
            f"Multiple orders match {order_name}",
            data={"order_name": order_name, "matches": matches},
        )


class NoEligibleFulfillmentUnitsError(AppError):
    code = "NO_ELIGIBLE_UNITS"
    MESSAGE = "No valid fulfillment orders to fulfill (already fulfilled or closed)"

    def __init__(self, order_name: str = "") -> None:
        super().__init__(self.MESSAGE, data={"order_name": order_name})


# ---------------------------
# Plataforma remota
# ---------------------------
class ExternalError(AppError):
    """Falha ao falar com um serviço externo."""

    code = "EXTERNAL_ERROR"


class RemoteProtocolError(ExternalError):
    """Falha de transporte/autenticação/rate-limit/GraphQL. Nunca é repetida automaticamente."""

    code = "REMOTE_PROTOCOL"


class UserRuleRejection(AppError):
    """Recusa de regra de negócio reportada pela Shopify (userErrors)."""

    code = "USER_ERROR"

    def __init__(self, message: str, *, field: list[str] | None = None) -> None:
        super().__init__(message, data={"field": field or []})
        self.field = field or []
