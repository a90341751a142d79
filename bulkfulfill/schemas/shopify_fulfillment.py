from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from bulkfulfill.utils.utils_helpers import order_gid


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------------
# Contexto da loja
# -------------------------
class ShopContext(BaseModel):
    shop_domain: str = Field(..., description="Domínio myshopify (ex.: minha-loja.myshopify.com)")
    access_token: str = Field(..., repr=False)
    api_version: str = Field(..., examples=["2024-04"])

    model_config = ConfigDict(frozen=True)

    @property
    def admin_base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"

    @property
    def graphql_url(self) -> str:
        return f"{self.admin_base_url}/graphql.json"


# -------------------------
# Linha de entrada (planilha)
# -------------------------
class FulfillmentRequestRow(_CamelModel):
    order_name: str = Field(..., min_length=1, description="Nome do pedido na Shopify (ex.: '#1025')")
    tracking_number: str = ""
    tracking_company: str
    tracking_url: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# -------------------------
# Estado remoto
# -------------------------
class ResolvedOrder(BaseModel):
    order_id: int
    order_name: str = ""

    model_config = ConfigDict(frozen=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def global_id(self) -> str:
        return order_gid(self.order_id)


class FulfillmentOrderLineItem(_CamelModel):
    id: str
    remaining_quantity: int = 0


class FulfillmentOrderUnit(_CamelModel):
    id: str
    status: str
    line_items: list[FulfillmentOrderLineItem] = Field(default_factory=list)

    @property
    def is_eligible(self) -> bool:
        return self.status.upper() == "OPEN" and any(li.remaining_quantity > 0 for li in self.line_items)


class TrackingInfo(BaseModel):
    number: str
    company: str
    url: str

    @classmethod
    def from_row(cls, row: FulfillmentRequestRow) -> TrackingInfo:
        return cls(number=row.tracking_number, company=row.tracking_company, url=row.tracking_url)


# -------------------------
# Resultado da mutation (variante decodificada na borda)
# -------------------------
class FulfillmentCreated(BaseModel):
    kind: Literal["created"] = "created"
    fulfillment_id: str
    status: str | None = None


class FulfillmentRejected(BaseModel):
    kind: Literal["rejected"] = "rejected"
    message: str
    field: list[str] = Field(default_factory=list)


FulfillmentOutcome = Annotated[FulfillmentCreated | FulfillmentRejected, Field(discriminator="kind")]


# -------------------------
# Relatório
# -------------------------
class FulfillmentReportEntry(_CamelModel):
    order_name: str
    fulfillment_id: str | None = None
    error: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> FulfillmentReportEntry:
        if (self.fulfillment_id is None) == (self.error is None):
            raise ValueError("entry must carry exactly one of fulfillment_id or error")
        return self

    @property
    def ok(self) -> bool:
        return self.fulfillment_id is not None

    @classmethod
    def success(cls, order_name: str, fulfillment_id: str) -> FulfillmentReportEntry:
        return cls(order_name=order_name, fulfillment_id=fulfillment_id)

    @classmethod
    def failure(cls, order_name: str, error: str) -> FulfillmentReportEntry:
        return cls(order_name=order_name, error=error or "Unknown error")


class FulfillmentBatchReport(_CamelModel):
    entries: tuple[FulfillmentReportEntry, ...] = Field(default=(), alias="summary")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return len(self.entries)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def succeeded(self) -> int:
        return sum(1 for e in self.entries if e.ok)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return self.total - self.succeeded
