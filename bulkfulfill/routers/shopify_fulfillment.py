from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile

from bulkfulfill.common.errors import BatchInputError
from bulkfulfill.common.logging_setup import get_logger
from bulkfulfill.common.settings import settings
from bulkfulfill.schemas.shopify_fulfillment import FulfillmentBatchReport, ShopContext
from bulkfulfill.services.bulk_fulfillment import BatchOrchestrator, get_orchestrator
from bulkfulfill.services.fulfillment_rows import SAMPLE_FILENAME, build_sample_workbook
from bulkfulfill.services.shopify_client import shop_context_from_settings

router = APIRouter(prefix="/orders", tags=["Fulfillment em lote"])

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_shop_context() -> ShopContext:
    shop = shop_context_from_settings()
    if not shop.shop_domain or not shop.access_token:
        raise HTTPException(status_code=503, detail="Shopify credentials not configured")
    return shop


@router.post(
    "/bulk-fulfill",
    response_model=FulfillmentBatchReport,
    response_model_exclude_none=True,
    summary="Fulfillment em lote via planilha",
    description=(
        "Recebe uma planilha (.xlsx ou .csv) via multipart/form-data no campo `file`, "
        "com as colunas `Name`, `TrackingNumber`, `TrackingCompany` e `TrackingUrl`. "
        "Retorna uma entrada por fulfillment order processada (ou uma entrada de erro por linha)."
    ),
)
def bulk_fulfill(
    file: UploadFile | None = File(None, description="Planilha com pedidos e rastreios"),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
    shop: ShopContext = Depends(get_shop_context),
) -> FulfillmentBatchReport:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    data = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File too large")

    try:
        return orchestrator.run_upload(data, file.filename, shop)
    except BatchInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("bulk_fulfill_falhou", extra={"upload_name": file.filename})
        raise HTTPException(status_code=500, detail="Failed to process bulk fulfillment")


@router.get(
    "/bulk-fulfill/report",
    response_model=FulfillmentBatchReport,
    response_model_exclude_none=True,
    summary="Último relatório de fulfillment em lote",
)
def last_report(orchestrator: BatchOrchestrator = Depends(get_orchestrator)) -> FulfillmentBatchReport:
    report = orchestrator.last_report()
    if report is None:
        raise HTTPException(status_code=404, detail="No bulk fulfillment report available")
    return report


@router.get("/bulk-fulfill/sample", summary="Planilha de exemplo (.xlsx)")
def sample_file() -> Response:
    return Response(
        content=build_sample_workbook(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{SAMPLE_FILENAME}"'},
    )
