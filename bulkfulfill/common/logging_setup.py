# common/logging_setup.py

from __future__ import annotations

import logging
import os
import re
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

# ---------------------------
# Contexto propagado por execução
# ---------------------------
correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="-")
shop_ctx: ContextVar[str] = ContextVar("shop", default="-")
app_env_ctx: ContextVar[str] = ContextVar("app_env", default="dev")

# Tokens de acesso da Shopify (shpat_/shpca_/shppa_) e header de autenticação
_SECRET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(x-shopify-access-token[\"']?\s*[:=]\s*[\"']?)([A-Za-z0-9_\-]{6,})", re.IGNORECASE),
    re.compile(r"()(shp(?:at|ca|pa|ss)_[A-Za-z0-9]{6,})"),
    re.compile(r"(token\s*=\s*)([A-Za-z0-9_\-]{6,})", re.IGNORECASE),
    re.compile(r"(authorization:\s*bearer\s+)([A-Za-z0-9\._\-]{6,})", re.IGNORECASE),
)


def get_correlation_id() -> str:
    """Retorna o correlation_id atual do contexto."""
    return correlation_id_ctx.get("-")


# ---------------------------
# Filtro de contexto + máscara opcional
# ---------------------------
class ContextFilter(logging.Filter):
    def __init__(self, *, service: str, version: str, mask_secrets: bool = False) -> None:
        super().__init__()
        self.service = service
        self.version = version
        self.mask_secrets = mask_secrets

    def _mask(self, msg: str) -> str:
        if not self.mask_secrets or not msg:
            return msg
        for p in _SECRET_PATTERNS:
            msg = p.sub(r"\1***", msg)
        return msg

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get("-")
        record.shop = shop_ctx.get("-")
        record.env = app_env_ctx.get()
        record.service = self.service
        record.version = self.version
        record.pid = os.getpid()
        record.thread_name = getattr(record, "threadName", "")

        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        return True


# ---------------------------
# Formatter JSON (UTC, ISO-8601)
# ---------------------------
class UtcJsonFormatter(jsonlogger.JsonFormatter):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("timestamp", True)
        kwargs.setdefault("json_ensure_ascii", False)
        kwargs.setdefault("rename_fields", {"asctime": "ts", "levelname": "level", "message": "msg"})
        super().__init__(*args, **kwargs)

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        if "ts" in log_record and isinstance(log_record["ts"], str) and not log_record["ts"].endswith("Z"):
            log_record["ts"] += "Z"


def _build_json_formatter() -> logging.Formatter:
    fmt = (
        "%(asctime)s %(levelname)s %(name)s %(message)s "
        "%(correlation_id)s %(shop)s %(env)s %(service)s %(version)s %(pid)s %(thread_name)s"
    )
    return UtcJsonFormatter(fmt)


_QUIET_LOGGERS = ("urllib3", "multipart", "python_multipart")


# ---------------------------
# Setup principal
# ---------------------------
def setup_logging(*, level: int | str | None = None, file_path: str | None = None) -> None:
    """
    Configura logging global em JSON no stdout:
      - Nível por LOG_LEVEL, padrão INFO
      - Arquivo opcional (LOG_FILE ou file_path); o diretório é criado se faltar
      - Máscara de tokens da Shopify: LOG_MASK_SECRETS=1
    """
    service = os.getenv("APP_NAME", "bulk-fulfillment")
    version = os.getenv("APP_VERSION", "0.0.0")
    app_env_ctx.set(os.getenv("APP_ENV", "dev"))

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
    if isinstance(level, str):
        level = getattr(logging, level, logging.INFO)

    file_path = file_path or os.getenv("LOG_FILE")
    mask_secrets = os.getenv("LOG_MASK_SECRETS", "0") in ("1", "true", "True")

    root = logging.getLogger()
    root.setLevel(level)

    # Evita duplicações (mantém handlers de terceiros, ex. caplog do pytest)
    for h in list(root.handlers):
        if getattr(h, "_bulkfulfill", False):
            root.removeHandler(h)
            h.close()

    ctx_filter = ContextFilter(service=service, version=version, mask_secrets=mask_secrets)
    handlers: list[logging.Handler] = [logging.StreamHandler(stream=sys.stdout)]
    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path, encoding="utf-8"))

    for h in handlers:
        h.setLevel(level)
        h.setFormatter(_build_json_formatter())
        h.addFilter(ctx_filter)
        h._bulkfulfill = True  # type: ignore[attr-defined]
        root.addHandler(h)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        logging.getLogger(name).setLevel(level)


# ---------------------------
# Helpers
# ---------------------------
def set_correlation_id(value: str | None = None) -> str:
    """Define (ou gera) o correlation_id para o contexto atual.

    Retorna o valor definido.
    """
    cid = value or str(uuid.uuid4())
    correlation_id_ctx.set(cid)
    return cid


def bind_context(*, shop: str | None = None) -> None:
    """Fixa a loja no contexto de log (ex.: início do lote)."""
    if shop:
        shop_ctx.set(shop)


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or "bulkfulfill")
