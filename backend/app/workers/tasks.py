"""Celery tasks for approval notifications."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ─── Sync DB session factory (Celery workers are synchronous) ───

def _get_sync_session():
    """Return a sync SQLAlchemy session. Caller must close it."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from app.core.config import settings

    engine = create_engine(settings.DATABASE_URL_SYNC, pool_pre_ping=True)
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return Session()


def _active_emails_with_role(db, role: str) -> list[str]:
    from app.models.user import User, UserRole

    stmt = (
        select(User.email)
        .join(UserRole, UserRole.user_id == User.id)
        .where(
            UserRole.role == role,
            User.is_active.is_(True),
            User.deleted_at.is_(None),
        )
        .order_by(User.email)
    )
    return list(db.execute(stmt).scalars().all())


# ─── Tasks ───

@celery_app.task(bind=True, name="tasks.notify_approvers", max_retries=3)
def notify_approvers(self, invoice_id: str, role: str) -> dict:
    """Email every active holder of `role` that the invoice awaits them."""
    from app.models.invoice import Invoice
    from app.services import audit as audit_svc
    from app.services import email as email_svc

    db = _get_sync_session()
    try:
        invoice = db.execute(
            select(Invoice).where(Invoice.id == uuid.UUID(invoice_id))
        ).scalar_one_or_none()
        if invoice is None:
            logger.error("notify_approvers: invoice %s not found", invoice_id)
            return {"invoice_id": invoice_id, "notified": 0}

        recipients = _active_emails_with_role(db, role)
        email_svc.send_approval_request_email(invoice, recipients, role)
        audit_svc.log(
            db,
            action="approval_requested",
            entity_type="invoice",
            entity_id=invoice.id,
            notes=f"Notified {len(recipients)} {role} approver(s)",
        )
        db.commit()
        logger.info("notify_approvers: invoice=%s role=%s recipients=%d", invoice_id, role, len(recipients))
        return {"invoice_id": invoice_id, "notified": len(recipients)}
    except OperationalError as exc:
        logger.warning("notify_approvers: database unavailable, retrying: %s", exc)
        raise self.retry(exc=exc, countdown=30)
    finally:
        db.close()


@celery_app.task(bind=True, name="tasks.notify_submitter", max_retries=3)
def notify_submitter(self, invoice_id: str) -> dict:
    """Email the submitter once their invoice is approved by finance or rejected."""
    from app.models.invoice import Invoice
    from app.models.user import User
    from app.services import audit as audit_svc
    from app.services import email as email_svc

    db = _get_sync_session()
    try:
        row = db.execute(
            select(Invoice, User.email)
            .join(User, User.id == Invoice.created_by)
            .where(Invoice.id == uuid.UUID(invoice_id))
        ).first()
        if row is None:
            logger.error("notify_submitter: invoice %s not found", invoice_id)
            return {"invoice_id": invoice_id, "notified": 0}

        invoice, email = row
        email_svc.send_decision_email(invoice, email)
        audit_svc.log(
            db,
            action="decision_notified",
            entity_type="invoice",
            entity_id=invoice.id,
            notes=f"Submitter notified of status {invoice.status}",
        )
        db.commit()
        return {"invoice_id": invoice_id, "notified": 1}
    except OperationalError as exc:
        logger.warning("notify_submitter: database unavailable, retrying: %s", exc)
        raise self.retry(exc=exc, countdown=30)
    finally:
        db.close()
