# common/settings.py
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent  # sobe até a pasta do main.py


class Settings(BaseSettings):
    SHOP_URL: str = ""  # ex.: minha-loja.myshopify.com
    SHOPIFY_TOKEN: str = ""  # default evita erro no mypy
    SHOPIFY_API_VERSION: str = "2024-04"  # vazio => versão trimestral corrente
    APP_ENV: str = "dev"

    # Normalização das linhas da planilha
    DEFAULT_TRACKING_COMPANY: str = "India Post"
    TRACKING_URL_TEMPLATE: str = (
        "https://www.indiapost.gov.in/VAS/Pages/trackconsignment.aspx?tn={tracking_number}"
    )

    # Resolução de pedidos
    ORDER_LOOKUP_STATUS: str = "open"
    ORDER_MATCH_POLICY: Literal["first", "unique"] = "first"

    # Paginação das fulfillment orders
    FULFILLMENT_ORDERS_PAGE_SIZE: int = 10
    LINE_ITEMS_PAGE_SIZE: int = 50

    # Evita notificar o cliente duas vezes quando a mesma FO é tentada de novo no lote
    SUPPRESS_NOTIFY_ON_RETRY: bool = True

    # HTTP
    HTTP_MAX_RETRIES: int = 0

    # Uploads
    UPLOAD_DIR: str = "var/uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    CORS_ORIGINS: str = "*"

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR.parent / ".env"),  # busca o .env na raiz do projeto
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Em runtime, pydantic-settings vai sobrescrever com valores do .env/ambiente
settings: Settings = Settings()
