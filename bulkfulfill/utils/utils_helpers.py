from __future__ import annotations

from typing import Any

import pandas as pd


# -----------------------------------------------------------------------------
# Helpers gerais
# -----------------------------------------------------------------------------
def limpar(v: Any) -> str:
    """Célula de planilha -> texto sem espaços; NaN/None viram ""."""
    if v is None:
        return ""
    try:
        if pd.isna(v):
            return ""
    except (TypeError, ValueError):
        pass
    return str(v).strip()


def order_gid(order_id: int) -> str:
    return f"gid://shopify/Order/{order_id}"
