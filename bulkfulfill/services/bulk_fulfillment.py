from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from functools import lru_cache
from typing import Any

from bulkfulfill.common.errors import AppError, NoEligibleFulfillmentUnitsError, UserRuleRejection
from bulkfulfill.common.logging_setup import bind_context, get_logger
from bulkfulfill.schemas.shopify_fulfillment import (
    FulfillmentBatchReport,
    FulfillmentRejected,
    FulfillmentReportEntry,
    FulfillmentRequestRow,
    ShopContext,
    TrackingInfo,
)
from bulkfulfill.services.fulfillment_rows import normalize_row, read_rows
from bulkfulfill.services.order_lookup import OrderResolver
from bulkfulfill.services.shopify_client import ShopifyGateway
from bulkfulfill.services.shopify_fulfillment import FulfillmentExecutor, FulfillmentOrderSelector, PendingAttempts
from bulkfulfill.storage.reports import InMemoryReportStore, ReportStore
from bulkfulfill.storage.uploads import staged_upload
from bulkfulfill.utils.utils_helpers import limpar

logger = get_logger(__name__)

GatewayFactory = Callable[[ShopContext], Any]
RowNormalizer = Callable[[Mapping[str, Any]], FulfillmentRequestRow]


class BatchOrchestrator:
    """
    Executa o lote linha a linha, na ordem do arquivo:
        normalizar -> resolver pedido -> selecionar FOs -> criar fulfillment (por FO)

    Falha em normalizar/resolver/selecionar gera uma única entrada de erro para a linha.
    Cada FO gera a sua própria entrada; erro numa FO não interrompe as demais nem as
    próximas linhas. Ao final o relatório substitui o anterior no ReportStore.

    `pending_attempts` vive com o orquestrador (não com o lote): uma FO que caiu
    em timeout continua marcada se a mesma planilha for reenviada.
    """

    def __init__(
        self,
        store: ReportStore,
        *,
        gateway_factory: GatewayFactory = ShopifyGateway,
        normalizer: RowNormalizer = normalize_row,
    ) -> None:
        self.store = store
        self.gateway_factory = gateway_factory
        self.normalizer = normalizer
        self.pending_attempts: PendingAttempts = {}

    # ---------------------------
    # Entrada por upload
    # ---------------------------
    def run_upload(self, file_bytes: bytes, filename: str, shop: ShopContext) -> FulfillmentBatchReport:
        """Planilha enviada -> relatório. O arquivo temporário é removido em qualquer caso."""
        with staged_upload(file_bytes, filename) as path:
            raw_rows = read_rows(path, filename)
        return self.run_batch(raw_rows, shop)

    # ---------------------------
    # Lote
    # ---------------------------
    def run_batch(self, raw_rows: Iterable[Mapping[str, Any]], shop: ShopContext) -> FulfillmentBatchReport:
        bind_context(shop=shop.shop_domain)
        gateway = self.gateway_factory(shop)
        resolver = OrderResolver(gateway)
        selector = FulfillmentOrderSelector(gateway)
        executor = FulfillmentExecutor(gateway, pending=self.pending_attempts)

        rows = list(raw_rows)
        logger.info("bulk_fulfill_start", extra={"rows": len(rows)})
        t0 = time.monotonic()

        entries: list[FulfillmentReportEntry] = []
        for idx, raw in enumerate(rows, start=1):
            row_entries = self._process_row(raw, resolver, selector, executor)
            logger.info(
                "bulk_fulfill_row",
                extra={
                    "row": idx,
                    "order_name": row_entries[0].order_name,
                    "ok": sum(1 for e in row_entries if e.ok),
                    "errors": sum(1 for e in row_entries if not e.ok),
                },
            )
            entries.extend(row_entries)

        report = FulfillmentBatchReport(entries=tuple(entries))
        self.store.save(report)
        logger.info(
            "bulk_fulfill_done",
            extra={
                "total": report.total,
                "succeeded": report.succeeded,
                "failed": report.failed,
                "elapsed_s": round(time.monotonic() - t0, 3),
            },
        )
        return report

    def last_report(self) -> FulfillmentBatchReport | None:
        return self.store.load()

    # ---------------------------
    # Pipeline de uma linha
    # ---------------------------
    def _process_row(
        self,
        raw: Mapping[str, Any],
        resolver: OrderResolver,
        selector: FulfillmentOrderSelector,
        executor: FulfillmentExecutor,
    ) -> list[FulfillmentReportEntry]:
        order_name = limpar(raw.get("Name"))

        try:
            row = self.normalizer(raw)
            order_name = row.order_name
            order = resolver.resolve(row.order_name)
            units = selector.select_eligible(order)
            if not units:
                raise NoEligibleFulfillmentUnitsError(order_name)
        except AppError as e:
            logger.info("bulk_fulfill_row_erro", extra={"order_name": order_name, "code": e.code})
            return [FulfillmentReportEntry.failure(order_name, str(e))]
        except Exception as e:
            logger.exception("bulk_fulfill_row_falhou", extra={"order_name": order_name})
            return [FulfillmentReportEntry.failure(order_name, str(e))]

        tracking = TrackingInfo.from_row(row)
        entries: list[FulfillmentReportEntry] = []
        for unit in units:
            try:
                outcome = executor.fulfill(unit, tracking)
                if isinstance(outcome, FulfillmentRejected):
                    raise UserRuleRejection(outcome.message, field=outcome.field)
            except AppError as e:
                logger.info(
                    "bulk_fulfill_unit_erro",
                    extra={"order_name": order_name, "fulfillment_order_id": unit.id, "code": e.code},
                )
                entries.append(FulfillmentReportEntry.failure(order_name, str(e)))
                continue
            except Exception as e:
                logger.exception(
                    "bulk_fulfill_unit_falhou", extra={"order_name": order_name, "fulfillment_order_id": unit.id}
                )
                entries.append(FulfillmentReportEntry.failure(order_name, str(e)))
                continue

            entries.append(FulfillmentReportEntry.success(order_name, outcome.fulfillment_id))
        return entries


# -----------------------------------------------------------------------------
# Instâncias do processo
# -----------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_report_store() -> ReportStore:
    return InMemoryReportStore()


@lru_cache(maxsize=1)
def get_orchestrator() -> BatchOrchestrator:
    return BatchOrchestrator(get_report_store())
