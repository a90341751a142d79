from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, cast

import requests
from pydantic import ValidationError

from bulkfulfill.common.errors import RemoteProtocolError
from bulkfulfill.common.http_client import http_get, http_post
from bulkfulfill.common.logging_setup import get_logger
from bulkfulfill.common.settings import settings
from bulkfulfill.schemas.shopify_fulfillment import (
    FulfillmentCreated,
    FulfillmentOrderUnit,
    FulfillmentOutcome,
    FulfillmentRejected,
    ResolvedOrder,
    ShopContext,
    TrackingInfo,
)
from bulkfulfill.utils.throttlers import pace_after_response

logger = get_logger(__name__)


def obter_api_shopify_version(now: datetime | None = None) -> str:
    """
    Retorna a versão trimestral da Shopify API (YYYY-01/04/07/10).
    Usa datetime aware (UTC por padrão). 'now' é opcional (útil para testes).
    """
    dt = now or datetime.now(UTC)
    q_start = ((dt.month - 1) // 3) * 3 + 1  # 1, 4, 7, 10
    return f"{dt.year}-{q_start:02d}"


def shop_context_from_settings() -> ShopContext:
    return ShopContext(
        shop_domain=settings.SHOP_URL.strip().removeprefix("https://").rstrip("/"),
        access_token=settings.SHOPIFY_TOKEN,
        api_version=settings.SHOPIFY_API_VERSION.strip() or obter_api_shopify_version(),
    )


_QUERY_FULFILLMENT_ORDERS = """
query($orderId: ID!, $first: Int!, $lineItemsFirst: Int!) {
  order(id: $orderId) {
    id
    fulfillmentOrders(first: $first) {
      edges {
        node {
          id
          status
          lineItems(first: $lineItemsFirst) {
            edges {
              node {
                id
                remainingQuantity
              }
            }
          }
        }
      }
    }
  }
}
""".strip()

_MUTATION_CREATE = """
mutation fulfillmentCreate($fulfillment: FulfillmentV2Input!) {
  fulfillmentCreateV2(fulfillment: $fulfillment) {
    fulfillment { id status }
    userErrors { field message }
  }
}
""".strip()


class ShopifyGateway:
    """
    Borda com a Shopify Admin API.

    Toda resposta é decodificada aqui, uma única vez, em modelos tipados:
      - lookup REST de pedidos -> list[ResolvedOrder]
      - query de fulfillment orders -> list[FulfillmentOrderUnit] | None
      - mutation fulfillmentCreateV2 -> FulfillmentCreated | FulfillmentRejected
    Falhas de transporte/protocolo levantam RemoteProtocolError.
    """

    def __init__(self, shop: ShopContext, *, session: requests.Session | None = None, pace: bool = True) -> None:
        self.shop = shop
        self._session = session
        self._pace = pace

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.shop.access_token,
        }

    @staticmethod
    def _json(res: requests.Response, what: str) -> dict[str, Any]:
        try:
            data = res.json()
        except ValueError as e:
            raise RemoteProtocolError(f"Invalid JSON from Shopify ({what})", code="BAD_PAYLOAD", cause=e) from e
        if not isinstance(data, dict):
            raise RemoteProtocolError(f"Unexpected payload from Shopify ({what})", code="BAD_PAYLOAD")
        return cast(dict[str, Any], data)

    # ---------------------------
    # GraphQL
    # ---------------------------
    def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        res = http_post(
            self.shop.graphql_url,
            json={"query": query, "variables": variables},
            headers=self._headers(),
            session=self._session,
        )
        payload = self._json(res, "graphql")

        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else errors
            msg = first.get("message") if isinstance(first, dict) else str(first)
            code = ((first.get("extensions") or {}).get("code") if isinstance(first, dict) else None) or "GRAPHQL_ERROR"
            logger.error("graphql_errors", extra={"code": code, "errors": errors})
            raise RemoteProtocolError(str(msg or "GraphQL error"), code=code, data={"errors": errors})

        if self._pace:
            pace_after_response(payload)
        return cast(dict[str, Any], payload.get("data") or {})

    # ---------------------------
    # Pedidos (REST)
    # ---------------------------
    def find_orders_by_name(self, order_name: str, *, status: str = "open") -> list[ResolvedOrder]:
        res = http_get(
            f"{self.shop.admin_base_url}/orders.json",
            params={"name": order_name, "status": status, "fields": "id,name"},
            headers=self._headers(),
            session=self._session,
        )
        payload = self._json(res, "orders")
        found: list[ResolvedOrder] = []
        for o in payload.get("orders") or []:
            raw_id = (o or {}).get("id")
            if not raw_id:
                continue
            try:
                found.append(ResolvedOrder(order_id=int(raw_id), order_name=str(o.get("name") or order_name)))
            except (TypeError, ValueError):
                logger.warning("order_id_invalido", extra={"order_name": order_name, "id": raw_id})
        return found

    # ---------------------------
    # Fulfillment orders
    # ---------------------------
    def fetch_fulfillment_orders(
        self, order_global_id: str, *, first: int, line_items_first: int
    ) -> list[FulfillmentOrderUnit] | None:
        """None quando o pedido não existe/não é acessível para o token."""
        data = self.graphql(
            _QUERY_FULFILLMENT_ORDERS,
            {"orderId": order_global_id, "first": first, "lineItemsFirst": line_items_first},
        )
        order = data.get("order")
        if order is None:
            return None

        units: list[FulfillmentOrderUnit] = []
        for e in (order.get("fulfillmentOrders") or {}).get("edges") or []:
            fo = (e or {}).get("node") or {}
            li_edges = (fo.get("lineItems") or {}).get("edges") or []
            try:
                units.append(
                    FulfillmentOrderUnit(
                        id=str(fo["id"]),
                        status=str(fo.get("status") or ""),
                        line_items=[((lie or {}).get("node") or {}) for lie in li_edges],
                    )
                )
            except (KeyError, ValidationError) as ex:
                raise RemoteProtocolError(
                    "Malformed fulfillment order payload", code="BAD_PAYLOAD", cause=ex, data={"node": fo}
                ) from ex
        return units

    # ---------------------------
    # fulfillmentCreateV2
    # ---------------------------
    def create_fulfillment(
        self,
        fulfillment_order_id: str,
        line_items: Sequence[dict[str, Any]],
        tracking: TrackingInfo,
        *,
        notify_customer: bool,
    ) -> FulfillmentOutcome:
        data = self.graphql(
            _MUTATION_CREATE,
            {
                "fulfillment": {
                    "lineItemsByFulfillmentOrder": [
                        {
                            "fulfillmentOrderId": fulfillment_order_id,
                            "fulfillmentOrderLineItems": list(line_items),
                        }
                    ],
                    "trackingInfo": tracking.model_dump(),
                    "notifyCustomer": notify_customer,
                }
            },
        )
        result = data.get("fulfillmentCreateV2")
        if not isinstance(result, dict):
            raise RemoteProtocolError("Empty fulfillmentCreateV2 response", code="BAD_PAYLOAD")

        user_errors = result.get("userErrors") or []
        if user_errors:
            first = user_errors[0] or {}
            return FulfillmentRejected(
                message=str(first.get("message") or "Unknown error"),
                field=[str(f) for f in (first.get("field") or [])],
            )

        fulfillment = result.get("fulfillment") or {}
        if not fulfillment.get("id"):
            raise RemoteProtocolError("fulfillmentCreateV2 returned no fulfillment", code="BAD_PAYLOAD")
        return FulfillmentCreated(fulfillment_id=str(fulfillment["id"]), status=fulfillment.get("status"))
