"""In-memory stand-in for ShopifyGateway.

Orders, fulfillment orders and mutation outcomes are configured per test;
every call is recorded in ``calls`` so ordering can be asserted.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from bulkfulfill.schemas.shopify_fulfillment import (
    FulfillmentCreated,
    FulfillmentOrderLineItem,
    FulfillmentOrderUnit,
    ResolvedOrder,
    ShopContext,
    TrackingInfo,
)

SHOP = ShopContext(shop_domain="test-shop.myshopify.com", access_token="shpat_test", api_version="2024-04")


def make_unit(unit_id: str, status: str = "OPEN", *remaining: int) -> FulfillmentOrderUnit:
    """Build a fulfillment order; one line item per remaining quantity (default: a single item with 1)."""
    quantities = remaining or (1,)
    return FulfillmentOrderUnit(
        id=f"gid://shopify/FulfillmentOrder/{unit_id}",
        status=status,
        line_items=[
            FulfillmentOrderLineItem(id=f"gid://shopify/FulfillmentOrderLineItem/{unit_id}{i}", remaining_quantity=q)
            for i, q in enumerate(quantities, start=1)
        ],
    )


class FakeShopify:
    def __init__(self) -> None:
        self.orders: dict[str, Any] = {}
        self.fulfillment_orders: dict[str, Any] = {}
        self.outcomes: dict[str, Any] = {}
        self.calls: list[tuple[Any, ...]] = []

    # ---- setup helpers ----
    def add_order(self, name: str, order_id: int, *units: FulfillmentOrderUnit) -> ResolvedOrder:
        order = ResolvedOrder(order_id=order_id, order_name=name)
        self.orders.setdefault(name, []).append(order)
        self.fulfillment_orders[order.global_id] = list(units)
        return order

    # ---- gateway interface ----
    def find_orders_by_name(self, order_name: str, *, status: str = "open") -> list[ResolvedOrder]:
        self.calls.append(("lookup", order_name, status))
        value = self.orders.get(order_name, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    def fetch_fulfillment_orders(
        self, order_global_id: str, *, first: int, line_items_first: int
    ) -> list[FulfillmentOrderUnit] | None:
        self.calls.append(("fetch", order_global_id, first, line_items_first))
        value = self.fulfillment_orders.get(order_global_id)
        if isinstance(value, Exception):
            raise value
        return None if value is None else list(value)

    def create_fulfillment(
        self,
        fulfillment_order_id: str,
        line_items: Sequence[dict[str, Any]],
        tracking: TrackingInfo,
        *,
        notify_customer: bool,
    ) -> Any:
        self.calls.append(("create", fulfillment_order_id, list(line_items), tracking, notify_customer))
        value = self.outcomes.get(fulfillment_order_id)
        if isinstance(value, list):
            value = value.pop(0)
        if isinstance(value, Exception):
            raise value
        if value is None:
            suffix = fulfillment_order_id.rsplit("/", 1)[-1]
            return FulfillmentCreated(fulfillment_id=f"gid://shopify/Fulfillment/{suffix}", status="SUCCESS")
        return value

    def created_units(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "create"]
