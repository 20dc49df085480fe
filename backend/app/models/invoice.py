import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin


class Invoice(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved_by_owner', 'approved_by_finance', 'rejected')",
            name="ck_invoices_status",
        ),
        CheckConstraint("amount > 0 AND amount <= 999999.99", name="ck_invoices_amount"),
        Index("ix_invoices_status_created_at", "status", "created_at"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="pending", index=True
    )  # pending, approved_by_owner, approved_by_finance, rejected
    attachment_path: Mapped[str | None] = mapped_column(String(500), nullable=True)  # MinIO object key
    attachment_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    attachment_mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    attachment_size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )

    approval_steps: Mapped[list["ApprovalStep"]] = relationship(
        "ApprovalStep",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.decided_at",
    )


class ApprovalStep(Base, UUIDMixin):
    """Append-only record of one owner or finance decision on an invoice."""

    __tablename__ = "approval_steps"
    __table_args__ = (
        CheckConstraint(
            "step_type IN ('owner_approval', 'finance_approval')", name="ck_approval_steps_step_type"
        ),
        CheckConstraint("decision IN ('approved', 'rejected')", name="ck_approval_steps_decision"),
    )

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_type: Mapped[str] = mapped_column(String(30), nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    decided_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )
    comment: Mapped[str | None] = mapped_column(String(500), nullable=True)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="approval_steps")
