"""append_only_audit_tables

Revision ID: 8d2b7e4f6a10
Revises: 5e0f1c2a9b31
Create Date: 2026-10-12 09:45:00.000000

Enforce append-only semantics on approval_steps and audit_logs at the DB level:
- Revoke UPDATE and DELETE from PUBLIC
- Grant SELECT and INSERT only

Approval steps and audit entries can then only be added, never rewritten,
even from a psql session using the app role.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '8d2b7e4f6a10'
down_revision: Union[str, None] = '5e0f1c2a9b31'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPEND_ONLY_TABLES = ("approval_steps", "audit_logs")


def upgrade() -> None:
    for table in APPEND_ONLY_TABLES:
        op.execute(f"REVOKE UPDATE, DELETE ON {table} FROM PUBLIC;")
        op.execute(f"GRANT SELECT, INSERT ON {table} TO PUBLIC;")


def downgrade() -> None:
    # Restore full DML access (only for disaster-recovery; normally never run)
    for table in APPEND_ONLY_TABLES:
        op.execute(f"GRANT UPDATE, DELETE ON {table} TO PUBLIC;")
