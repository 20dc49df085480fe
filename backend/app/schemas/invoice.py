"""Pydantic schemas for invoice submission and display."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

MAX_AMOUNT = Decimal("999999.99")


# ─── Submission ───

class InvoiceCreate(BaseModel):
    """Validated invoice fields from the upload form."""

    invoice_number: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)
    ]
    amount: Annotated[Decimal, Field(gt=0, le=MAX_AMOUNT, max_digits=8, decimal_places=2)]
    description: Annotated[str | None, StringConstraints(max_length=500)] = None

    @field_validator("description")
    @classmethod
    def blank_description_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


# ─── Output ───

class ApprovalStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_id: uuid.UUID
    step_type: str
    decision: str
    actor_id: uuid.UUID
    decided_at: datetime
    comment: str | None


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    invoice_number: str
    amount: Decimal
    description: str | None
    status: str
    created_by: uuid.UUID
    created_at: datetime
    attachment_name: str | None = None
    has_attachment: bool = False

    @classmethod
    def from_invoice(cls, invoice) -> "InvoiceOut":
        out = cls.model_validate(invoice)
        out.has_attachment = invoice.attachment_path is not None
        return out


class InvoiceDetail(InvoiceOut):
    """Invoice with its approval history and the caller's next-step hints."""

    attachment_url: str | None = None
    approval_steps: list[ApprovalStepOut] = []
    actionable: bool = False
    waiting_for_role: str | None = None


class InvoiceListResponse(BaseModel):
    items: list[InvoiceOut]
    total: int
    page: int
    page_size: int


class InvoiceSubmitResponse(BaseModel):
    invoice: InvoiceOut
    message: str
