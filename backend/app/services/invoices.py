"""Invoice submission and read-side helpers."""
import logging
import uuid
from dataclasses import dataclass

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvoiceValidationError
from app.models.invoice import ApprovalStep, Invoice
from app.rules import approval_workflow as workflow
from app.schemas.invoice import InvoiceCreate
from app.services import audit as audit_svc
from app.services import invoice_store
from app.services import storage as storage_svc
from app.services.roles import Actor

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
}


@dataclass
class Attachment:
    filename: str
    content_type: str
    data: bytes


@dataclass
class InvoiceView:
    invoice: Invoice
    steps: list[ApprovalStep]
    attachment_url: str | None
    actionable: bool
    waiting_for_role: workflow.Role | None


# ─── Validation ───

def parse_invoice_form(
    invoice_number: str,
    amount: str,
    description: str | None = None,
) -> InvoiceCreate:
    """Validate raw form fields. Raises InvoiceValidationError."""
    try:
        return InvoiceCreate(
            invoice_number=invoice_number,
            amount=amount,
            description=description,
        )
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise InvoiceValidationError(errors[0]["message"], errors=errors) from exc


def validate_attachment(attachment: Attachment) -> None:
    """Reject unsupported, empty or oversized files. Raises InvoiceValidationError."""
    if attachment.content_type not in ALLOWED_MIME_TYPES:
        raise InvoiceValidationError(
            f"Unsupported file type '{attachment.content_type}'. Allowed: PDF, JPEG, PNG."
        )
    size = len(attachment.data)
    if size == 0:
        raise InvoiceValidationError("Uploaded file is empty.")
    if size > settings.MAX_ATTACHMENT_BYTES:
        limit_mb = settings.MAX_ATTACHMENT_BYTES // (1024 * 1024)
        raise InvoiceValidationError(f"File size must be less than {limit_mb}MB ({size} bytes).")


# ─── Submission ───

async def submit_invoice(
    db: AsyncSession,
    actor: Actor,
    data: InvoiceCreate,
    attachment: Attachment | None = None,
) -> Invoice:
    """Store the optional attachment, then create the invoice in 'pending'.

    If the database write fails after the file was uploaded, the object is
    removed again so no orphan attachment is left behind.
    """
    if attachment is not None:
        validate_attachment(attachment)

    invoice_id = uuid.uuid4()
    object_name = None
    if attachment is not None:
        object_name = storage_svc.attachment_object_name(invoice_id, attachment.filename)
        storage_svc.upload_file(
            object_name=object_name,
            data=attachment.data,
            content_type=attachment.content_type,
        )

    try:
        invoice = await invoice_store.create_invoice(
            db,
            invoice_id=invoice_id,
            invoice_number=data.invoice_number,
            amount=data.amount,
            description=data.description,
            created_by=actor.id,
            attachment_path=object_name,
            attachment_name=attachment.filename if attachment else None,
            attachment_mime_type=attachment.content_type if attachment else None,
            attachment_size_bytes=len(attachment.data) if attachment else None,
        )
        await audit_svc.log_async(
            db,
            action="invoice_submitted",
            entity_type="invoice",
            entity_id=invoice.id,
            actor_id=actor.id,
            actor_email=actor.email,
            after={
                "invoice_number": data.invoice_number,
                "amount": str(data.amount),
                "status": invoice.status,
                "attachment": object_name,
            },
        )
        await db.commit()
    except Exception:
        if object_name:
            _discard_attachment(object_name)
        raise

    await db.refresh(invoice)
    logger.info("Invoice submitted: id=%s number=%s by=%s", invoice.id, invoice.invoice_number, actor.id)

    _enqueue_owner_notification(invoice.id)
    return invoice


def _discard_attachment(object_name: str) -> None:
    try:
        storage_svc.delete_object(object_name)
    except storage_svc.STORAGE_ERRORS as exc:
        logger.error("Could not remove orphaned attachment %s: %s", object_name, exc)


def _enqueue_owner_notification(invoice_id: uuid.UUID) -> None:
    try:
        from app.workers.tasks import notify_approvers  # noqa: PLC0415
        notify_approvers.delay(str(invoice_id), workflow.required_role(workflow.INITIAL_STATUS).value)
    except Exception as exc:
        # Not fatal: the invoice is stored and owners still see it in the queue.
        logger.warning("Failed to enqueue owner notification for %s: %s", invoice_id, exc)


# ─── Read side ───

async def get_invoice_view(db: AsyncSession, invoice_id: uuid.UUID, actor: Actor) -> InvoiceView:
    """Invoice, its steps, a presigned attachment URL and the actor's next-step flags."""
    invoice = await invoice_store.get_invoice(db, invoice_id)
    steps = await invoice_store.list_steps(db, invoice_id)
    url = storage_svc.get_presigned_url(invoice.attachment_path) if invoice.attachment_path else None
    return InvoiceView(
        invoice=invoice,
        steps=steps,
        attachment_url=url,
        actionable=workflow.is_actionable(invoice.status, actor.roles),
        waiting_for_role=workflow.required_role(invoice.status),
    )
