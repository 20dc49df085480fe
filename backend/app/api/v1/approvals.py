"""Approval workflow API endpoints.

  GET  /approvals                       — invoices awaiting an owner or finance step
  POST /approvals/{invoice_id}/approve
  POST /approvals/{invoice_id}/reject
"""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_actor
from app.db.session import get_session
from app.rules.approval_workflow import Decision
from app.schemas.approval import (
    ApprovalDecisionRequest,
    ApprovalDecisionResponse,
    ApprovalListResponse,
    PendingInvoiceOut,
)
from app.schemas.invoice import ApprovalStepOut, InvoiceOut
from app.services import approval as approval_svc
from app.services.roles import Actor

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Pending approvals ───

@router.get(
    "",
    response_model=ApprovalListResponse,
    summary="List invoices still awaiting an approval step",
)
async def list_pending_approvals(
    db: Annotated[AsyncSession, Depends(get_session)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    actionable_only: bool = Query(default=False, description="Only invoices the caller can act on now"),
):
    """Pending and owner-approved invoices, newest first, with per-caller flags."""
    items, total = await approval_svc.list_pending(
        db, actor, page=page, page_size=page_size, actionable_only=actionable_only
    )

    return ApprovalListResponse(
        items=[
            PendingInvoiceOut(
                **InvoiceOut.from_invoice(i.invoice).model_dump(),
                actionable=i.actionable,
                waiting_for_role=i.waiting_for_role.value if i.waiting_for_role else None,
            )
            for i in items
        ],
        total=total,
        page=page,
        page_size=page_size,
    )


# ─── Decisions ───

async def _decide(
    db: AsyncSession,
    invoice_id: uuid.UUID,
    actor: Actor,
    decision: Decision,
    body: ApprovalDecisionRequest | None,
) -> ApprovalDecisionResponse:
    comment = body.comment if body else None
    outcome = await approval_svc.apply_decision(db, invoice_id, actor, decision, comment)
    return ApprovalDecisionResponse(
        invoice=InvoiceOut.from_invoice(outcome.invoice),
        step=ApprovalStepOut.model_validate(outcome.step),
        previous_status=outcome.previous_status.value,
    )


@router.post(
    "/{invoice_id}/approve",
    response_model=ApprovalDecisionResponse,
    summary="Approve the invoice's current stage",
)
async def approve_invoice(
    invoice_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    body: Annotated[ApprovalDecisionRequest | None, Body()] = None,
):
    return await _decide(db, invoice_id, actor, Decision.approve, body)


@router.post(
    "/{invoice_id}/reject",
    response_model=ApprovalDecisionResponse,
    summary="Reject the invoice at its current stage",
)
async def reject_invoice(
    invoice_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    body: Annotated[ApprovalDecisionRequest | None, Body()] = None,
):
    return await _decide(db, invoice_id, actor, Decision.reject, body)
