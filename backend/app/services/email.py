"""Email notifications.

Only the console transport exists: every email is written to the log. There
is no SMTP client, so MAIL_ENABLED=True logs a warning and sends nothing.
"""
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def _amount_str(invoice) -> str:
    amount = getattr(invoice, "amount", None)
    return f"${float(amount):,.2f}" if amount is not None else "N/A"


def _deliver(to: list[str], subject: str, body: str) -> None:
    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== EMAIL ===\n"
            "From: %s <%s>\n"
            "To: %s\n"
            "Subject: %s\n"
            "%s\n"
            "=============",
            settings.MAIL_FROM_NAME, settings.MAIL_FROM,
            ", ".join(to), subject, body,
        )
        return

    # No SMTP transport is wired up.
    logger.warning(
        "MAIL_ENABLED=True but SMTP transport is not configured. "
        "Email to %s not sent: %s",
        ", ".join(to), subject,
    )


# ─── Approval request email ───

def send_approval_request_email(invoice, recipients: list[str], role: str) -> None:
    """Tell everyone holding `role` that an invoice is waiting for them."""
    if not recipients:
        logger.warning(
            "No active users with role '%s' to notify for invoice %s.",
            role, invoice.invoice_number,
        )
        return

    review_url = f"{settings.FRONTEND_URL.rstrip('/')}/approvals"
    stage = "owner approval" if role == "owner" else f"{role} approval"
    _deliver(
        to=recipients,
        subject=f"Action Required: Invoice {invoice.invoice_number} — {_amount_str(invoice)}",
        body=f"Invoice {invoice.invoice_number} is waiting for {stage}.\nReview: {review_url}",
    )


# ─── Decision outcome email ───

def send_decision_email(invoice, recipient: str) -> None:
    """Tell the submitter that their invoice reached a final status."""
    outcome = "approved" if invoice.status == "approved_by_finance" else "rejected"
    _deliver(
        to=[recipient],
        subject=f"Invoice {invoice.invoice_number} {outcome}",
        body=f"Your invoice {invoice.invoice_number} ({_amount_str(invoice)}) was {outcome}.",
    )
