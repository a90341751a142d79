from __future__ import annotations

import threading
from typing import Protocol

from bulkfulfill.schemas.shopify_fulfillment import FulfillmentBatchReport


class ReportStore(Protocol):
    """Slot único do "último relatório": começa vazio, escrita sobrescreve, leitura é opcional."""

    def save(self, report: FulfillmentBatchReport) -> None: ...

    def load(self) -> FulfillmentBatchReport | None: ...


class InMemoryReportStore:
    """Guarda o último relatório em memória (vida do processo). Último a terminar vence."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._report: FulfillmentBatchReport | None = None

    def save(self, report: FulfillmentBatchReport) -> None:
        with self._lock:
            self._report = report

    def load(self) -> FulfillmentBatchReport | None:
        # relatório é imutável (frozen), então devolver a referência é um snapshot
        with self._lock:
            return self._report
