from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from bulkfulfill.common.errors import OrderNotFoundError, RemoteProtocolError
from bulkfulfill.common.logging_setup import get_logger
from bulkfulfill.common.settings import settings
from bulkfulfill.schemas.shopify_fulfillment import (
    FulfillmentOrderUnit,
    FulfillmentOutcome,
    FulfillmentRejected,
    ResolvedOrder,
    TrackingInfo,
)

logger = get_logger(__name__)


class FulfillmentOrderSource(Protocol):
    def fetch_fulfillment_orders(
        self, order_global_id: str, *, first: int, line_items_first: int
    ) -> list[FulfillmentOrderUnit] | None: ...


class FulfillmentCreator(Protocol):
    def create_fulfillment(
        self,
        fulfillment_order_id: str,
        line_items: Sequence[dict[str, Any]],
        tracking: TrackingInfo,
        *,
        notify_customer: bool,
    ) -> FulfillmentOutcome: ...


class FulfillmentOrderSelector:
    """Busca as fulfillment orders do pedido (uma página) e mantém só as OPEN com saldo pendente."""

    def __init__(
        self,
        source: FulfillmentOrderSource,
        *,
        page_size: int | None = None,
        line_items_page_size: int | None = None,
    ) -> None:
        self.source = source
        self.page_size = page_size or settings.FULFILLMENT_ORDERS_PAGE_SIZE
        self.line_items_page_size = line_items_page_size or settings.LINE_ITEMS_PAGE_SIZE

    def select_eligible(self, order: ResolvedOrder) -> list[FulfillmentOrderUnit]:
        units = self.source.fetch_fulfillment_orders(
            order.global_id, first=self.page_size, line_items_first=self.line_items_page_size
        )
        if units is None:
            raise OrderNotFoundError(order.order_name)

        eligible = [u for u in units if u.is_eligible]
        if len(eligible) != len(units):
            logger.info(
                "fulfillment_orders_ignoradas",
                extra={
                    "order_id": order.order_id,
                    "ignored": [(u.id, u.status) for u in units if not u.is_eligible],
                },
            )
        return eligible


def _montar_line_items(unit: FulfillmentOrderUnit) -> list[dict[str, Any]]:
    """Sempre o saldo inteiro de cada item; itens já zerados ficam de fora."""
    return [{"id": li.id, "quantity": li.remaining_quantity} for li in unit.line_items if li.remaining_quantity > 0]


# Saldo enviado na tentativa cujo resultado ficou desconhecido, por FO
PendingAttempts = dict[str, tuple[tuple[str, int], ...]]


def _saldo(line_items: Sequence[dict[str, Any]]) -> tuple[tuple[str, int], ...]:
    return tuple((li["id"], li["quantity"]) for li in line_items)


class FulfillmentExecutor:
    """
    Uma mutation fulfillmentCreateV2 por fulfillment order.

    userErrors viram FulfillmentRejected (não é exceção); falhas de transporte
    sobem como RemoteProtocolError e deixam a FO com resultado desconhecido.
    Na próxima tentativa da mesma FO o saldo é comparado com o da tentativa
    anterior: igual => nada foi criado, notifica normalmente; diferente => algo
    foi atendido no meio do caminho e, com SUPPRESS_NOTIFY_ON_RETRY, segue com
    notifyCustomer=false.

    `pending` pode ser compartilhado entre lotes (ver BatchOrchestrator).
    """

    def __init__(
        self,
        creator: FulfillmentCreator,
        *,
        suppress_notify_on_retry: bool | None = None,
        pending: PendingAttempts | None = None,
    ) -> None:
        self.creator = creator
        self.suppress_notify_on_retry = (
            settings.SUPPRESS_NOTIFY_ON_RETRY if suppress_notify_on_retry is None else suppress_notify_on_retry
        )
        self.pending: PendingAttempts = {} if pending is None else pending

    def _notify_for(self, unit_id: str, saldo: tuple[tuple[str, int], ...]) -> bool:
        anterior = self.pending.get(unit_id)
        if anterior is None or anterior == saldo:
            return True
        if not self.suppress_notify_on_retry:
            return True
        logger.warning(
            "notificacao_suprimida_retry",
            extra={"fulfillment_order_id": unit_id, "saldo_anterior": anterior, "saldo_atual": saldo},
        )
        return False

    def fulfill(self, unit: FulfillmentOrderUnit, tracking: TrackingInfo) -> FulfillmentOutcome:
        line_items = _montar_line_items(unit)
        if not line_items:
            return FulfillmentRejected(message="Nothing left to fulfill in this fulfillment order")

        saldo = _saldo(line_items)
        try:
            outcome = self.creator.create_fulfillment(
                unit.id, line_items, tracking, notify_customer=self._notify_for(unit.id, saldo)
            )
        except RemoteProtocolError:
            self.pending[unit.id] = saldo
            raise

        self.pending.pop(unit.id, None)
        if isinstance(outcome, FulfillmentRejected):
            logger.info("fulfillment_rejeitado", extra={"fulfillment_order_id": unit.id, "reason": outcome.message})
        return outcome
