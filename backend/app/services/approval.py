"""Approval decision service.

Applies one approve/reject decision as a single transaction:

    read invoice → decide() → conditional status update → append step → commit

If the conditional update loses a race the transaction is rolled back, the
invoice is re-read, and StaleStateError tells the caller where the invoice
now stands so the decision point can be presented again. Nothing becomes
visible before the commit, so a cancelled request leaves no trace.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StaleStateError
from app.models.invoice import ApprovalStep, Invoice
from app.rules import approval_workflow as workflow
from app.rules.approval_workflow import Decision, InvoiceStatus, Role
from app.services import invoice_store
from app.services.roles import Actor

logger = logging.getLogger(__name__)


@dataclass
class DecisionOutcome:
    invoice: Invoice
    step: ApprovalStep
    previous_status: InvoiceStatus


@dataclass
class PendingItem:
    invoice: Invoice
    actionable: bool
    waiting_for_role: Role | None


# ─── Apply a decision ───

async def apply_decision(
    db: AsyncSession,
    invoice_id: uuid.UUID,
    actor: Actor,
    decision: Decision | str,
    comment: str | None = None,
) -> DecisionOutcome:
    """Approve or reject an invoice on behalf of `actor`.

    Raises:
        NotFoundError: no such invoice.
        UnauthorizedError: actor's roles cannot act on the status just read.
        StaleStateError: another decision changed the status first.
        StoreUnavailableError: the database could not be reached.
    """
    invoice = await invoice_store.get_invoice(db, invoice_id)

    result = workflow.decide(
        invoice.status,
        actor.roles,
        decision,
        comment,
        actor_id=actor.id,
        decided_at=datetime.now(timezone.utc),
        step_id=uuid.uuid4(),
    )

    swapped = await invoice_store.conditional_update_status(
        db, invoice_id, result.previous_status, result.new_status
    )
    if not swapped:
        await db.rollback()
        current = await invoice_store.get_invoice(db, invoice_id)
        logger.warning(
            "Stale decision: invoice=%s actor=%s expected=%s current=%s",
            invoice_id, actor.id, result.previous_status.value, current.status,
        )
        raise StaleStateError(
            f"Invoice {invoice_id} was updated by someone else; it is now '{current.status}'.",
            invoice_id=invoice_id,
            expected_status=result.previous_status.value,
            current_status=current.status,
            actionable=workflow.is_actionable(current.status, actor.roles),
        )

    step = await invoice_store.append_approval_step(db, invoice_id, result.step)
    await db.commit()

    logger.info(
        "Approval decision: invoice=%s actor=%s step=%s decision=%s %s -> %s",
        invoice_id, actor.id, step.step_type, step.decision,
        result.previous_status.value, result.new_status.value,
    )

    # Queued before the re-read so a committed decision always notifies.
    _enqueue_notifications(invoice_id, result.new_status)

    invoice = await invoice_store.get_invoice(db, invoice_id)
    return DecisionOutcome(invoice=invoice, step=step, previous_status=result.previous_status)


# ─── Pending approvals view ───

async def list_pending(
    db: AsyncSession,
    actor: Actor,
    page: int = 1,
    page_size: int = 20,
    actionable_only: bool = False,
) -> tuple[list[PendingItem], int]:
    """Invoices still awaiting a step, newest first, annotated for `actor`."""
    statuses = workflow.AWAITING_STATUSES
    if actionable_only:
        statuses = frozenset(s for s in statuses if workflow.is_actionable(s, actor.roles))
        if not statuses:
            return [], 0

    invoices, total = await invoice_store.list_invoices(
        db, statuses=statuses, page=page, page_size=page_size
    )
    items = [
        PendingItem(
            invoice=inv,
            actionable=workflow.is_actionable(inv.status, actor.roles),
            waiting_for_role=workflow.required_role(inv.status),
        )
        for inv in invoices
    ]
    return items, total


# ─── Notifications ───

def _enqueue_notifications(invoice_id: uuid.UUID, new_status: InvoiceStatus) -> None:
    """Queue emails for whoever acts next, or for the submitter when closed."""
    try:
        from app.workers.tasks import notify_approvers, notify_submitter  # noqa: PLC0415

        next_role = workflow.required_role(new_status)
        if next_role is not None:
            notify_approvers.delay(str(invoice_id), next_role.value)
        else:
            notify_submitter.delay(str(invoice_id))
    except Exception as exc:
        # Not fatal: the decision is already committed.
        logger.warning("Failed to enqueue notifications for invoice %s: %s", invoice_id, exc)
