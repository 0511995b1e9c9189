from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DocumentType(str, Enum):
    INVOICE = "01"
    CREDIT_NOTE = "02"
    DEBIT_NOTE = "03"
    REFUND_NOTE = "04"

    @property
    def requires_reference(self) -> bool:
        return self in (DocumentType.CREDIT_NOTE, DocumentType.DEBIT_NOTE)


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    VALIDATED = "validated"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class _InputModel(BaseModel):
    # Inputs arrive either snake_case (Python callers) or camelCase (API JSON).
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class LineItem(_InputModel):
    line_number: int | None = None
    description: str | None = Field(
        default=None,
        validation_alias=AliasChoices("description", "itemDescription", "item_description"),
    )
    quantity: Decimal
    unit_price: Decimal
    discount_amount: Decimal = Decimal("0.00")
    line_total: Decimal | None = None
    sst_rate: Decimal = Decimal("0.00")
    sst_amount: Decimal = Decimal("0.00")
    tax_exemption_code: str | None = None


class Invoice(_InputModel):
    invoice_number: str | None = None
    e_invoice_type: DocumentType = DocumentType.INVOICE
    issue_date: date | None = None
    due_date: date | None = None
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1.000000")
    subtotal: Decimal = Decimal("0.00")
    total_discount: Decimal = Decimal("0.00")
    sst_amount: Decimal = Decimal("0.00")
    grand_total: Decimal | None = None
    is_consolidated: bool = False
    consolidation_period: str | None = None
    reference_invoice_id: str | None = None
    reference_invoice_number: str | None = None
    reason: str | None = None
    notes: str | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    validation_score: int = Field(default=0, ge=0, le=100)
    last_validated_at: datetime | None = None


class Organization(_InputModel):
    name: str | None = None
    tin: str | None = None
    industry_code: str | None = None
    is_sst_registered: bool | None = None
    country_code: str = "MY"
    invoice_prefix: str | None = None


class Buyer(_InputModel):
    name: str | None = None
    tin: str | None = None
    is_individual: bool = False
    country_code: str = "MY"
