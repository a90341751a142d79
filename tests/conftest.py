"""Shared pytest fixtures."""

import pytest

from bulkfulfill.common.settings import settings
from bulkfulfill.services.bulk_fulfillment import BatchOrchestrator
from bulkfulfill.storage.reports import InMemoryReportStore
from tests.helpers.fake_shopify import FakeShopify


@pytest.fixture
def fake_shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
def report_store() -> InMemoryReportStore:
    return InMemoryReportStore()


@pytest.fixture
def orchestrator(fake_shopify, report_store) -> BatchOrchestrator:
    return BatchOrchestrator(report_store, gateway_factory=lambda shop: fake_shopify)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Keep staged uploads inside the test's tmp dir."""
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path
