"""Invoice approval workflow — deterministic two-stage state machine.

    pending ──owner──▶ approved_by_owner ──finance──▶ approved_by_finance
       │                      │
       └──────owner/finance reject──────▶ rejected

The STAGES table below is the only place that knows which role may act on
which status. decide(), is_actionable(), required_role() and
AWAITING_STATUSES are all derived from it, so "can see the buttons" and
"can act" never drift apart.

Nothing here touches the database or the clock: persistence and the
conditional status update belong to app.services.approval.
"""
import enum
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from app.core.exceptions import UnauthorizedError

COMMENT_MAX_LENGTH = 500


class InvoiceStatus(str, enum.Enum):
    pending = "pending"
    approved_by_owner = "approved_by_owner"
    approved_by_finance = "approved_by_finance"
    rejected = "rejected"


class Role(str, enum.Enum):
    user = "user"
    owner = "owner"
    finance = "finance"
    admin = "admin"


class Decision(str, enum.Enum):
    approve = "approve"
    reject = "reject"


class StepType(str, enum.Enum):
    owner_approval = "owner_approval"
    finance_approval = "finance_approval"


class StepDecision(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"


# ─── Transition table ───

@dataclass(frozen=True)
class Stage:
    required_role: Role
    step_type: StepType
    on_approve: InvoiceStatus
    on_reject: InvoiceStatus = InvoiceStatus.rejected


STAGES: dict[InvoiceStatus, Stage] = {
    InvoiceStatus.pending: Stage(
        required_role=Role.owner,
        step_type=StepType.owner_approval,
        on_approve=InvoiceStatus.approved_by_owner,
    ),
    InvoiceStatus.approved_by_owner: Stage(
        required_role=Role.finance,
        step_type=StepType.finance_approval,
        on_approve=InvoiceStatus.approved_by_finance,
    ),
}

INITIAL_STATUS = InvoiceStatus.pending
AWAITING_STATUSES: frozenset[InvoiceStatus] = frozenset(STAGES)
TERMINAL_STATUSES: frozenset[InvoiceStatus] = frozenset(InvoiceStatus) - AWAITING_STATUSES


# ─── Result dataclasses ───

@dataclass(frozen=True)
class ApprovalStepDraft:
    """An ApprovalStep ready to be persisted by the caller."""

    id: uuid.UUID | None
    step_type: StepType
    decision: StepDecision
    actor_id: uuid.UUID
    decided_at: datetime | None
    comment: str | None


@dataclass(frozen=True)
class DecisionResult:
    previous_status: InvoiceStatus
    new_status: InvoiceStatus
    step: ApprovalStepDraft


# ─── Lookups ───

def _normalize_roles(roles: Iterable[Role | str]) -> frozenset[Role]:
    return frozenset(Role(r) for r in roles)


def _stage_for(status: InvoiceStatus, roles: frozenset[Role]) -> Stage | None:
    stage = STAGES.get(status)
    if stage is None or stage.required_role not in roles:
        return None
    return stage


def required_role(status: InvoiceStatus | str) -> Role | None:
    """Role that can take the next step on an invoice, None when terminal."""
    stage = STAGES.get(InvoiceStatus(status))
    return stage.required_role if stage else None


def is_actionable(status: InvoiceStatus | str, roles: Iterable[Role | str]) -> bool:
    """True iff decide() would accept this role set for this status."""
    return _stage_for(InvoiceStatus(status), _normalize_roles(roles)) is not None


def can_transition(current: InvoiceStatus | str, new: InvoiceStatus | str) -> bool:
    """True if `new` is reachable from `current` in a single step."""
    stage = STAGES.get(InvoiceStatus(current))
    if stage is None:
        return False
    return InvoiceStatus(new) in (stage.on_approve, stage.on_reject)


# ─── Decision ───

def decide(
    status: InvoiceStatus | str,
    roles: Iterable[Role | str],
    decision: Decision | str,
    comment: str | None = None,
    *,
    actor_id: uuid.UUID,
    decided_at: datetime | None = None,
    step_id: uuid.UUID | None = None,
) -> DecisionResult:
    """Compute the status transition and audit step for one decision.

    `status` must be the value the caller will use as the expected value of
    its conditional update; the engine never assumes it is still current.

    Raises:
        UnauthorizedError: the role set cannot act on `status`, including
            every call against a terminal status.
    """
    status = InvoiceStatus(status)
    decision = Decision(decision)
    role_set = _normalize_roles(roles)

    stage = _stage_for(status, role_set)
    if stage is None:
        expected = STAGES.get(status)
        if expected is None:
            raise UnauthorizedError(
                f"Invoice is {status.value}; no further decisions are allowed."
            )
        raise UnauthorizedError(
            f"Role '{expected.required_role.value}' is required to "
            f"{decision.value} an invoice in status '{status.value}'.",
            required_role=expected.required_role.value,
        )

    if decision is Decision.approve:
        new_status = stage.on_approve
        step_decision = StepDecision.approved
    else:
        new_status = stage.on_reject
        step_decision = StepDecision.rejected

    step = ApprovalStepDraft(
        id=step_id,
        step_type=stage.step_type,
        decision=step_decision,
        actor_id=actor_id,
        decided_at=decided_at,
        comment=comment or None,
    )
    return DecisionResult(previous_status=status, new_status=new_status, step=step)
