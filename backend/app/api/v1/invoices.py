"""Invoice submission, list, and detail API endpoints."""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_actor
from app.db.session import get_session
from app.rules.approval_workflow import InvoiceStatus
from app.schemas.invoice import (
    ApprovalStepOut,
    InvoiceDetail,
    InvoiceListResponse,
    InvoiceOut,
    InvoiceSubmitResponse,
)
from app.services import invoice_store
from app.services import invoices as invoice_svc
from app.services.roles import Actor

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Submit endpoint ───

@router.post(
    "",
    response_model=InvoiceSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a new invoice with an optional PDF/image attachment",
)
async def submit_invoice(
    db: Annotated[AsyncSession, Depends(get_session)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    invoice_number: Annotated[str, Form()],
    amount: Annotated[str, Form()],
    description: Annotated[str | None, Form()] = None,
    file: Annotated[UploadFile | None, File(description="PDF or image (JPEG/PNG), max 10 MB")] = None,
):
    data = invoice_svc.parse_invoice_form(invoice_number, amount, description)

    attachment = None
    if file is not None and file.filename:
        attachment = invoice_svc.Attachment(
            filename=file.filename,
            content_type=file.content_type or "",
            data=await file.read(),
        )

    invoice = await invoice_svc.submit_invoice(db, actor, data, attachment)
    return InvoiceSubmitResponse(
        invoice=InvoiceOut.from_invoice(invoice),
        message="Invoice uploaded successfully. Awaiting owner approval.",
    )


# ─── List endpoint ───

@router.get(
    "",
    response_model=InvoiceListResponse,
    summary="List invoices, newest first",
)
async def list_invoices(
    db: Annotated[AsyncSession, Depends(get_session)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    invoice_status: InvoiceStatus | None = Query(default=None, alias="status"),
    mine: bool = Query(default=False, description="Only invoices submitted by the caller"),
):
    invoices, total = await invoice_store.list_invoices(
        db,
        statuses=[invoice_status] if invoice_status else None,
        created_by=actor.id if mine else None,
        page=page,
        page_size=page_size,
    )
    return InvoiceListResponse(
        items=[InvoiceOut.from_invoice(inv) for inv in invoices],
        total=total,
        page=page,
        page_size=page_size,
    )


# ─── Detail endpoint ───

@router.get(
    "/{invoice_id}",
    response_model=InvoiceDetail,
    summary="Invoice detail with approval history",
)
async def get_invoice(
    invoice_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    view = await invoice_svc.get_invoice_view(db, invoice_id, actor)
    return InvoiceDetail(
        **InvoiceOut.from_invoice(view.invoice).model_dump(),
        attachment_url=view.attachment_url,
        approval_steps=[ApprovalStepOut.model_validate(s) for s in view.steps],
        actionable=view.actionable,
        waiting_for_role=view.waiting_for_role.value if view.waiting_for_role else None,
    )
