"""Pydantic schemas for approval workflow API endpoints."""
from pydantic import BaseModel, Field

from app.rules.approval_workflow import COMMENT_MAX_LENGTH
from app.schemas.invoice import ApprovalStepOut, InvoiceOut


# ─── Pending approvals view ───

class PendingInvoiceOut(InvoiceOut):
    actionable: bool
    waiting_for_role: str | None


class ApprovalListResponse(BaseModel):
    items: list[PendingInvoiceOut]
    total: int
    page: int
    page_size: int


# ─── Decision request body ───

class ApprovalDecisionRequest(BaseModel):
    comment: str | None = Field(default=None, max_length=COMMENT_MAX_LENGTH)


class ApprovalDecisionResponse(BaseModel):
    invoice: InvoiceOut
    step: ApprovalStepOut
    previous_status: str
