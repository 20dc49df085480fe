"""Invoice store — the only code that reads or writes invoices and steps.

Status is never assigned directly on an ORM object. Every change goes through
conditional_update_status(), an UPDATE guarded by the status value the caller
decided against, so two approvers racing on one invoice cannot both win.
None of these functions commit; the caller owns the transaction.
"""
import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.db.session import store_errors
from app.models.invoice import ApprovalStep, Invoice
from app.rules.approval_workflow import (
    INITIAL_STATUS,
    ApprovalStepDraft,
    InvoiceStatus,
    can_transition,
)

logger = logging.getLogger(__name__)


async def create_invoice(
    db: AsyncSession,
    *,
    invoice_number: str,
    amount: Decimal,
    created_by: uuid.UUID,
    description: str | None = None,
    invoice_id: uuid.UUID | None = None,
    attachment_path: str | None = None,
    attachment_name: str | None = None,
    attachment_mime_type: str | None = None,
    attachment_size_bytes: int | None = None,
) -> Invoice:
    """Insert a new invoice in the initial status and flush it."""
    invoice = Invoice(
        id=invoice_id or uuid.uuid4(),
        invoice_number=invoice_number,
        amount=amount,
        description=description,
        status=INITIAL_STATUS.value,
        created_by=created_by,
        attachment_path=attachment_path,
        attachment_name=attachment_name,
        attachment_mime_type=attachment_mime_type,
        attachment_size_bytes=attachment_size_bytes,
    )
    with store_errors("create_invoice"):
        db.add(invoice)
        await db.flush()
    return invoice


async def get_invoice(db: AsyncSession, invoice_id: uuid.UUID) -> Invoice:
    """Return the invoice as currently stored (identity map is overwritten)."""
    stmt = (
        select(Invoice)
        .where(Invoice.id == invoice_id)
        .execution_options(populate_existing=True)
    )
    with store_errors("get_invoice"):
        result = await db.execute(stmt)
    invoice = result.scalar_one_or_none()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found.")
    return invoice


async def conditional_update_status(
    db: AsyncSession,
    invoice_id: uuid.UUID,
    expected_status: InvoiceStatus | str,
    new_status: InvoiceStatus | str,
) -> bool:
    """Move an invoice from expected_status to new_status.

    Returns False when the stored status no longer equals expected_status
    (another decision got there first); nothing is written in that case.

    Raises:
        ValueError: new_status is not a forward step from expected_status.
    """
    expected_status = InvoiceStatus(expected_status)
    new_status = InvoiceStatus(new_status)
    if not can_transition(expected_status, new_status):
        raise ValueError(
            f"Illegal status transition {expected_status.value} -> {new_status.value}."
        )

    stmt = (
        update(Invoice)
        .where(Invoice.id == invoice_id, Invoice.status == expected_status.value)
        .values(status=new_status.value, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    with store_errors("conditional_update_status"):
        result = await db.execute(stmt)

    swapped = result.rowcount == 1
    if not swapped:
        logger.info(
            "Conditional update lost: invoice=%s expected=%s new=%s",
            invoice_id, expected_status.value, new_status.value,
        )
    return swapped


async def append_approval_step(
    db: AsyncSession,
    invoice_id: uuid.UUID,
    draft: ApprovalStepDraft,
) -> ApprovalStep:
    """Persist an ApprovalStep produced by the workflow engine."""
    step = ApprovalStep(
        id=draft.id or uuid.uuid4(),
        invoice_id=invoice_id,
        step_type=draft.step_type.value,
        decision=draft.decision.value,
        actor_id=draft.actor_id,
        decided_at=draft.decided_at or datetime.now(timezone.utc),
        comment=draft.comment,
    )
    with store_errors("append_approval_step"):
        db.add(step)
        await db.flush()
    return step


async def list_steps(db: AsyncSession, invoice_id: uuid.UUID) -> list[ApprovalStep]:
    """Return an invoice's approval steps in decision order."""
    stmt = (
        select(ApprovalStep)
        .where(ApprovalStep.invoice_id == invoice_id)
        .order_by(ApprovalStep.decided_at.asc())
    )
    with store_errors("list_steps"):
        result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_invoices(
    db: AsyncSession,
    statuses: Iterable[InvoiceStatus] | None = None,
    created_by: uuid.UUID | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Invoice], int]:
    """Return (invoices, total) filtered by status and submitter, newest first."""
    stmt = select(Invoice)
    if statuses is not None:
        stmt = stmt.where(Invoice.status.in_(sorted(s.value for s in statuses)))
    if created_by is not None:
        stmt = stmt.where(Invoice.created_by == created_by)

    with store_errors("list_invoices"):
        total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
        offset = (page - 1) * page_size
        result = await db.execute(
            stmt.order_by(Invoice.created_at.desc()).offset(offset).limit(page_size)
        )
    return list(result.scalars().all()), total
