from __future__ import annotations

import io
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pandas as pd

from bulkfulfill.common.errors import BatchInputError, MalformedRowError
from bulkfulfill.common.settings import settings
from bulkfulfill.schemas.shopify_fulfillment import FulfillmentRequestRow
from bulkfulfill.utils.utils_helpers import limpar

COLUMNS = ("Name", "TrackingNumber", "TrackingCompany", "TrackingUrl")
SUPPORTED_EXTENSIONS = (".xlsx", ".csv")
SAMPLE_FILENAME = "sample_bulk_fulfillment.xlsx"


# -----------------------------------------------------------------------------
# Leitura da planilha (primeira aba, guiada pelo cabeçalho)
# -----------------------------------------------------------------------------
def read_rows(source: bytes | Path, filename: str) -> list[dict[str, Any]]:
    """
    Converte o arquivo enviado (bytes ou caminho em disco) em registros crus (dict por linha).
    - .xlsx: só a primeira aba (openpyxl; .xls legado não é aceito)
    - .csv: separado por vírgula
    Todas as células são lidas como texto (números de rastreio não viram float).
    Linhas totalmente vazias são descartadas.
    """
    fname = (filename or "").lower()
    if not fname.endswith(SUPPORTED_EXTENSIONS):
        raise BatchInputError("Unsupported file type (use .xlsx or .csv)", data={"filename": filename})

    buf: io.BytesIO | Path
    if isinstance(source, Path):
        if not source.is_file() or source.stat().st_size == 0:
            raise BatchInputError("Uploaded file is empty", data={"filename": filename})
        buf = source
    else:
        if not source:
            raise BatchInputError("Uploaded file is empty", data={"filename": filename})
        buf = io.BytesIO(source)

    try:
        if fname.endswith(".csv"):
            df = pd.read_csv(buf, dtype=str, keep_default_na=False, skip_blank_lines=True)
        else:
            df = pd.read_excel(buf, sheet_name=0, dtype=str, engine="openpyxl")
    except Exception as e:
        raise BatchInputError(f"Could not read spreadsheet: {e}", cause=e, data={"filename": filename}) from e

    df.columns = [str(c).strip() for c in df.columns]

    registros: list[dict[str, Any]] = []
    for _, linha in df.iterrows():
        registro = {col: limpar(val) for col, val in linha.items()}
        if not any(registro.values()):
            continue
        registros.append(registro)
    return registros


# -----------------------------------------------------------------------------
# Normalização (pura, sem I/O)
# -----------------------------------------------------------------------------
def normalize_row(
    raw: Mapping[str, Any],
    *,
    default_company: str | None = None,
    url_template: str | None = None,
) -> FulfillmentRequestRow:
    """
    Registro cru -> FulfillmentRequestRow.
    TrackingCompany vazio usa a transportadora padrão; TrackingUrl vazio é montado
    a partir do template, mesmo sem número de rastreio (token vazio é aceito).
    """
    order_name = limpar(raw.get("Name"))
    if not order_name:
        raise MalformedRowError("Missing order name", data={"row": dict(raw)})

    tracking_number = limpar(raw.get("TrackingNumber"))
    company = limpar(raw.get("TrackingCompany")) or (default_company or settings.DEFAULT_TRACKING_COMPANY)
    url = limpar(raw.get("TrackingUrl")) or (url_template or settings.TRACKING_URL_TEMPLATE).format(
        tracking_number=tracking_number
    )

    return FulfillmentRequestRow(
        order_name=order_name,
        tracking_number=tracking_number,
        tracking_company=company,
        tracking_url=url,
    )


# -----------------------------------------------------------------------------
# Planilha de exemplo
# -----------------------------------------------------------------------------
def build_sample_workbook() -> bytes:
    """Modelo .xlsx de uma linha com as quatro colunas esperadas."""
    df = pd.DataFrame(
        [
            {
                "Name": "#1025",
                "TrackingNumber": "RX123456789IN",
                "TrackingCompany": settings.DEFAULT_TRACKING_COMPANY,
                "TrackingUrl": "",
            }
        ],
        columns=list(COLUMNS),
    )
    out = io.BytesIO()
    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Sample", index=False)
    return out.getvalue()
