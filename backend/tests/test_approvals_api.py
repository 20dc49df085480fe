"""Tests for the approval endpoints.

Tests:
  1. approve returns the new status, the appended step and previous_status
  2. reject forwards the comment to the decision service
  3. a lost race surfaces as 409 with the invoice's current status
  4. wrong role surfaces as 403 naming the required role
  5. unknown invoice is 404, store outage is 503
  6. comments longer than 500 characters are refused with 422
  7. GET /approvals returns per-caller actionable flags
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient, ASGITransport

from app.main import app
from app.core.deps import get_current_actor
from app.core.exceptions import NotFoundError, StaleStateError, StoreUnavailableError, UnauthorizedError
from app.db.session import get_session
from app.rules.approval_workflow import Decision, InvoiceStatus, Role
from app.services.approval import DecisionOutcome, PendingItem
from app.services.roles import Actor


# ─── Shared fixtures ──────────────────────────────────────────────────────────

INVOICE_ID = uuid.UUID("2b7e5d1c-9a46-4f38-8c0d-e1f2a3b4c5d6")
OWNER = Actor(
    id=uuid.UUID("b1b2c3d4-e5f6-7890-abcd-ef1234567890"),
    email="owner@example.com",
    full_name="Olivia Owner",
    roles=frozenset({Role.user, Role.owner}),
)
NOW = datetime(2026, 10, 2, 9, 30, tzinfo=timezone.utc)


class FakeInvoice:
    def __init__(self, status: str = "pending"):
        self.id = INVOICE_ID
        self.invoice_number = "INV-4001"
        self.amount = Decimal("812.40")
        self.description = "Catering"
        self.status = status
        self.created_by = uuid.UUID("c1b2c3d4-e5f6-7890-abcd-ef1234567890")
        self.created_at = NOW
        self.attachment_path = None
        self.attachment_name = None


class FakeStep:
    def __init__(self, decision: str = "approved", comment: str | None = None):
        self.id = uuid.uuid4()
        self.invoice_id = INVOICE_ID
        self.step_type = "owner_approval"
        self.decision = decision
        self.actor_id = OWNER.id
        self.decided_at = NOW
        self.comment = comment


async def override_owner():
    return OWNER


async def override_session():
    yield AsyncMock()


def install_overrides():
    app.dependency_overrides[get_current_actor] = override_owner
    app.dependency_overrides[get_session] = override_session


# ─── Decisions ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_approve_returns_new_status_and_step():
    outcome = DecisionOutcome(
        invoice=FakeInvoice("approved_by_owner"),
        step=FakeStep(),
        previous_status=InvoiceStatus.pending,
    )
    install_overrides()
    try:
        with patch("app.services.approval.apply_decision", AsyncMock(return_value=outcome)) as mock_apply:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(f"/api/v1/approvals/{INVOICE_ID}/approve")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    data = response.json()
    assert data["invoice"]["status"] == "approved_by_owner"
    assert data["previous_status"] == "pending"
    assert data["step"]["step_type"] == "owner_approval"
    assert data["step"]["decision"] == "approved"

    args = mock_apply.await_args.args
    assert args[1] == INVOICE_ID
    assert args[2] == OWNER
    assert args[3] is Decision.approve
    assert args[4] is None


@pytest.mark.asyncio
async def test_reject_forwards_comment():
    outcome = DecisionOutcome(
        invoice=FakeInvoice("rejected"),
        step=FakeStep(decision="rejected", comment="Wrong vendor"),
        previous_status=InvoiceStatus.pending,
    )
    install_overrides()
    try:
        with patch("app.services.approval.apply_decision", AsyncMock(return_value=outcome)) as mock_apply:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(
                    f"/api/v1/approvals/{INVOICE_ID}/reject", json={"comment": "Wrong vendor"}
                )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["step"]["comment"] == "Wrong vendor"
    assert mock_apply.await_args.args[3] is Decision.reject
    assert mock_apply.await_args.args[4] == "Wrong vendor"


@pytest.mark.asyncio
async def test_lost_race_returns_409_with_current_status():
    err = StaleStateError(
        "Invoice was updated by someone else.",
        invoice_id=INVOICE_ID,
        expected_status="pending",
        current_status="rejected",
        actionable=False,
    )
    install_overrides()
    try:
        with patch("app.services.approval.apply_decision", AsyncMock(side_effect=err)):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(f"/api/v1/approvals/{INVOICE_ID}/approve")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 409
    data = response.json()
    assert data["current_status"] == "rejected"
    assert data["expected_status"] == "pending"
    assert data["actionable"] is False
    assert data["invoice_id"] == str(INVOICE_ID)


@pytest.mark.asyncio
async def test_wrong_role_returns_403_with_required_role():
    err = UnauthorizedError(
        "Role 'finance' is required to approve an invoice in status 'approved_by_owner'.",
        required_role="finance",
    )
    install_overrides()
    try:
        with patch("app.services.approval.apply_decision", AsyncMock(side_effect=err)):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(f"/api/v1/approvals/{INVOICE_ID}/approve")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 403
    assert response.json()["required_role"] == "finance"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc, expected_status",
    [
        (NotFoundError("Invoice not found."), 404),
        (StoreUnavailableError("The invoice store is temporarily unavailable."), 503),
    ],
)
async def test_service_errors_map_to_http_status(exc, expected_status):
    install_overrides()
    try:
        with patch("app.services.approval.apply_decision", AsyncMock(side_effect=exc)):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(f"/api/v1/approvals/{INVOICE_ID}/reject")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == expected_status
    assert response.json()["detail"] == exc.message


@pytest.mark.asyncio
async def test_overlong_comment_returns_422():
    install_overrides()
    try:
        with patch("app.services.approval.apply_decision", AsyncMock()) as mock_apply:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post(
                    f"/api/v1/approvals/{INVOICE_ID}/reject", json={"comment": "x" * 501}
                )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 422
    mock_apply.assert_not_awaited()


# ─── Pending list ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_pending_list_includes_actionable_flags():
    items = [
        PendingItem(invoice=FakeInvoice("pending"), actionable=True, waiting_for_role=Role.owner),
        PendingItem(invoice=FakeInvoice("approved_by_owner"), actionable=False, waiting_for_role=Role.finance),
    ]
    install_overrides()
    try:
        with patch("app.services.approval.list_pending", AsyncMock(return_value=(items, 2))) as mock_list:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.get("/api/v1/approvals", params={"actionable_only": "true"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [(i["status"], i["actionable"], i["waiting_for_role"]) for i in data["items"]] == [
        ("pending", True, "owner"),
        ("approved_by_owner", False, "finance"),
    ]
    assert mock_list.await_args.kwargs["actionable_only"] is True
