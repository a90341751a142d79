"""Tests for fulfillment order selection and fulfillment creation."""

import pytest

from bulkfulfill.common.errors import OrderNotFoundError, RemoteProtocolError
from bulkfulfill.schemas.shopify_fulfillment import (
    FulfillmentCreated,
    FulfillmentRejected,
    ResolvedOrder,
    TrackingInfo,
)
from bulkfulfill.services.shopify_fulfillment import FulfillmentExecutor, FulfillmentOrderSelector
from tests.helpers.fake_shopify import make_unit

TRACKING = TrackingInfo(number="RX1", company="India Post", url="https://t/RX1")


class TestFulfillmentOrderSelector:
    def test_keeps_only_open_units_with_remaining_quantity(self, fake_shopify):
        order = fake_shopify.add_order(
            "#1",
            1,
            make_unit("a", "OPEN", 2),
            make_unit("b", "CLOSED", 3),
            make_unit("c", "OPEN", 0, 0),
            make_unit("d", "IN_PROGRESS", 1),
            make_unit("e", "OPEN", 0, 1),
        )

        eligible = FulfillmentOrderSelector(fake_shopify).select_eligible(order)

        assert [u.id.rsplit("/", 1)[-1] for u in eligible] == ["a", "e"]

    def test_empty_selection_is_not_an_error(self, fake_shopify):
        order = fake_shopify.add_order("#1", 1, make_unit("a", "CLOSED", 1))

        assert FulfillmentOrderSelector(fake_shopify).select_eligible(order) == []

    def test_missing_order_raises_not_found(self, fake_shopify):
        with pytest.raises(OrderNotFoundError):
            FulfillmentOrderSelector(fake_shopify).select_eligible(ResolvedOrder(order_id=404, order_name="#404"))

    def test_page_sizes_forwarded(self, fake_shopify):
        order = fake_shopify.add_order("#1", 1)

        FulfillmentOrderSelector(fake_shopify, page_size=3, line_items_page_size=7).select_eligible(order)

        assert fake_shopify.calls == [("fetch", "gid://shopify/Order/1", 3, 7)]


class TestFulfillmentExecutor:
    def test_fulfills_full_remaining_quantity_and_notifies(self, fake_shopify):
        unit = make_unit("a", "OPEN", 2, 0, 5)

        outcome = FulfillmentExecutor(fake_shopify).fulfill(unit, TRACKING)

        assert isinstance(outcome, FulfillmentCreated)
        _, unit_id, line_items, tracking, notify = fake_shopify.calls[0]
        assert unit_id == unit.id
        assert line_items == [
            {"id": "gid://shopify/FulfillmentOrderLineItem/a1", "quantity": 2},
            {"id": "gid://shopify/FulfillmentOrderLineItem/a3", "quantity": 5},
        ]
        assert tracking == TRACKING
        assert notify is True

    def test_user_error_is_returned_not_raised(self, fake_shopify):
        unit = make_unit("a")
        fake_shopify.outcomes[unit.id] = FulfillmentRejected(message="Fulfillment order is already fulfilled")

        outcome = FulfillmentExecutor(fake_shopify).fulfill(unit, TRACKING)

        assert isinstance(outcome, FulfillmentRejected)
        assert outcome.message == "Fulfillment order is already fulfilled"

    def test_protocol_error_raises(self, fake_shopify):
        unit = make_unit("a")
        fake_shopify.outcomes[unit.id] = RemoteProtocolError("Network error")

        with pytest.raises(RemoteProtocolError):
            FulfillmentExecutor(fake_shopify).fulfill(unit, TRACKING)

    def test_retry_with_unchanged_quantities_still_notifies(self, fake_shopify):
        unit = make_unit("a", "OPEN", 2)
        fake_shopify.outcomes[unit.id] = [RemoteProtocolError("Timeout"), None]
        executor = FulfillmentExecutor(fake_shopify, suppress_notify_on_retry=True)

        with pytest.raises(RemoteProtocolError):
            executor.fulfill(unit, TRACKING)
        outcome = executor.fulfill(unit, TRACKING)

        assert isinstance(outcome, FulfillmentCreated)
        assert [c[4] for c in fake_shopify.calls] == [True, True]
        assert executor.pending == {}

    def test_retry_after_quantities_changed_suppresses_notification(self, fake_shopify):
        before, after = make_unit("a", "OPEN", 2), make_unit("a", "OPEN", 1)
        fake_shopify.outcomes[before.id] = [RemoteProtocolError("Timeout"), None]
        executor = FulfillmentExecutor(fake_shopify, suppress_notify_on_retry=True)

        with pytest.raises(RemoteProtocolError):
            executor.fulfill(before, TRACKING)
        executor.fulfill(after, TRACKING)

        assert [c[4] for c in fake_shopify.calls] == [True, False]

    def test_changed_quantities_notify_when_suppression_disabled(self, fake_shopify):
        before, after = make_unit("a", "OPEN", 2), make_unit("a", "OPEN", 1)
        fake_shopify.outcomes[before.id] = [RemoteProtocolError("Timeout"), None]
        executor = FulfillmentExecutor(fake_shopify, suppress_notify_on_retry=False)

        with pytest.raises(RemoteProtocolError):
            executor.fulfill(before, TRACKING)
        executor.fulfill(after, TRACKING)

        assert [c[4] for c in fake_shopify.calls] == [True, True]

    def test_pending_attempts_shared_between_executors(self, fake_shopify):
        before, after = make_unit("a", "OPEN", 3), make_unit("a", "OPEN", 1)
        fake_shopify.outcomes[before.id] = [RemoteProtocolError("Timeout"), None]
        pending = {}

        with pytest.raises(RemoteProtocolError):
            FulfillmentExecutor(fake_shopify, suppress_notify_on_retry=True, pending=pending).fulfill(before, TRACKING)
        FulfillmentExecutor(fake_shopify, suppress_notify_on_retry=True, pending=pending).fulfill(after, TRACKING)

        assert [c[4] for c in fake_shopify.calls] == [True, False]
        assert pending == {}

    def test_rejection_clears_pending_attempt(self, fake_shopify):
        unit = make_unit("a")
        fake_shopify.outcomes[unit.id] = [RemoteProtocolError("Timeout"), FulfillmentRejected(message="Invalid")]
        executor = FulfillmentExecutor(fake_shopify)

        with pytest.raises(RemoteProtocolError):
            executor.fulfill(unit, TRACKING)
        assert unit.id in executor.pending
        executor.fulfill(unit, TRACKING)

        assert executor.pending == {}
