"""Tests for the notification tasks and the console email transport."""
import uuid
from decimal import Decimal
from unittest.mock import MagicMock, patch

from app.services import email as email_svc
from app.workers import tasks

INVOICE_ID = uuid.UUID("1e2d3c4b-5a69-4788-9a0b-c1d2e3f4a5b6")


class FakeInvoice:
    id = INVOICE_ID
    invoice_number = "INV-6001"
    amount = Decimal("1200.00")
    status = "approved_by_finance"


def make_sync_db(first=None, scalar=None, emails=()):
    result = MagicMock()
    result.first.return_value = first
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = list(emails)
    db = MagicMock()
    db.execute.return_value = result
    return db


def test_notify_approvers_emails_role_holders_and_audits():
    db = make_sync_db(scalar=FakeInvoice(), emails=["f1@example.com", "f2@example.com"])

    with patch.object(tasks, "_get_sync_session", return_value=db), \
         patch("app.services.email.send_approval_request_email") as mock_send, \
         patch("app.services.audit.log") as mock_audit:
        result = tasks.notify_approvers.run(str(INVOICE_ID), "finance")

    assert result == {"invoice_id": str(INVOICE_ID), "notified": 2}
    assert mock_send.call_args.args[1:] == (["f1@example.com", "f2@example.com"], "finance")
    assert mock_audit.call_args.kwargs["action"] == "approval_requested"
    db.commit.assert_called_once()
    db.close.assert_called_once()


def test_notify_approvers_missing_invoice_notifies_nobody():
    db = make_sync_db(scalar=None)
    with patch.object(tasks, "_get_sync_session", return_value=db), \
         patch("app.services.email.send_approval_request_email") as mock_send:
        result = tasks.notify_approvers.run(str(INVOICE_ID), "owner")

    assert result["notified"] == 0
    mock_send.assert_not_called()
    db.close.assert_called_once()


def test_notify_submitter_sends_decision_email():
    db = make_sync_db(first=(FakeInvoice(), "clerk@example.com"))
    with patch.object(tasks, "_get_sync_session", return_value=db), \
         patch("app.services.email.send_decision_email") as mock_send, \
         patch("app.services.audit.log"):
        result = tasks.notify_submitter.run(str(INVOICE_ID))

    assert result["notified"] == 1
    mock_send.assert_called_once()
    assert mock_send.call_args.args[1] == "clerk@example.com"


def test_decision_email_reports_outcome(caplog):
    with caplog.at_level("INFO", logger="app.services.email"):
        email_svc.send_decision_email(FakeInvoice(), "clerk@example.com")
    assert "INV-6001 approved" in caplog.text


def test_approval_request_without_recipients_is_skipped(caplog):
    with patch.object(email_svc, "_deliver") as mock_deliver:
        email_svc.send_approval_request_email(FakeInvoice(), [], "owner")
    mock_deliver.assert_not_called()


def test_mail_enabled_without_smtp_transport_sends_nothing(caplog):
    with patch.object(email_svc.settings, "MAIL_ENABLED", True), \
         caplog.at_level("INFO", logger="app.services.email"):
        email_svc.send_decision_email(FakeInvoice(), "clerk@example.com")

    assert "SMTP transport is not configured" in caplog.text
    assert "=== EMAIL ===" not in caplog.text
    assert all(r.levelname == "WARNING" for r in caplog.records if r.name == "app.services.email")
