from __future__ import annotations

from typing import Literal, Protocol

from bulkfulfill.common.errors import AmbiguousOrderError, OrderNotFoundError
from bulkfulfill.common.logging_setup import get_logger
from bulkfulfill.common.settings import settings
from bulkfulfill.schemas.shopify_fulfillment import ResolvedOrder

logger = get_logger(__name__)

MatchPolicy = Literal["first", "unique"]


class OrderLookup(Protocol):
    def find_orders_by_name(self, order_name: str, *, status: str = "open") -> list[ResolvedOrder]: ...


class OrderResolver:
    """
    Nome do pedido (#1025) -> ResolvedOrder, com uma leitura remota.

    Com várias correspondências:
      - "first": vale a primeira devolvida pela Shopify (aviso no log)
      - "unique": AmbiguousOrderError
    """

    def __init__(
        self,
        lookup: OrderLookup,
        *,
        policy: MatchPolicy | None = None,
        status: str | None = None,
    ) -> None:
        self.lookup = lookup
        self.policy: MatchPolicy = policy or settings.ORDER_MATCH_POLICY
        self.status = status or settings.ORDER_LOOKUP_STATUS

    def resolve(self, order_name: str) -> ResolvedOrder:
        matches = self.lookup.find_orders_by_name(order_name, status=self.status)
        if not matches:
            raise OrderNotFoundError(order_name)

        if len(matches) > 1:
            if self.policy == "unique":
                raise AmbiguousOrderError(order_name, len(matches))
            logger.warning(
                "order_name_ambiguo",
                extra={"order_name": order_name, "matches": len(matches), "chosen": matches[0].order_id},
            )
        return matches[0]
