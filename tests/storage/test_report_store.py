"""Tests for the last-report slot."""

import threading

from bulkfulfill.schemas.shopify_fulfillment import FulfillmentBatchReport, FulfillmentReportEntry
from bulkfulfill.storage.reports import InMemoryReportStore


def _report(*names):
    return FulfillmentBatchReport(entries=tuple(FulfillmentReportEntry.failure(n, "Order not found") for n in names))


def test_starts_empty():
    assert InMemoryReportStore().load() is None


def test_last_write_wins():
    store = InMemoryReportStore()
    store.save(_report("#1"))
    second = _report("#2")
    store.save(second)

    assert store.load() is second


def test_concurrent_writers_leave_a_whole_report():
    store = InMemoryReportStore()
    reports = [_report(*[f"#{i}"] * 50) for i in range(20)]
    threads = [threading.Thread(target=store.save, args=(r,)) for r in reports]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    loaded = store.load()
    assert loaded in reports
    assert len({e.order_name for e in loaded.entries}) == 1
