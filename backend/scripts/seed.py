"""Seed script — creates demo users for every role and a few invoices.

Idempotent: checks for existing records before inserting.
Run: python backend/scripts/seed.py
"""
import asyncio
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.models.invoice import Invoice
from app.models.user import User
from app.rules.approval_workflow import Role
from app.services import invoice_store
from app.services import roles as roles_svc

DEMO_PASSWORD = "changeme123"

DEMO_USERS = [
    ("admin@example.com", "Ada Admin", [Role.admin]),
    ("owner@example.com", "Oscar Owner", [Role.owner]),
    ("finance@example.com", "Fiona Finance", [Role.finance]),
    ("both@example.com", "Bea Both", [Role.owner, Role.finance]),
    ("clerk@example.com", "Cal Clerk", []),
]

DEMO_INVOICES = [
    ("INV-2024-001", Decimal("1250.00"), "Office chairs"),
    ("INV-2024-002", Decimal("89.90"), "Printer toner"),
    ("INV-2024-003", Decimal("15400.00"), None),
]


# ─── Upsert helpers ───────────────────────────────────────────────────────────

async def _upsert_user(db: AsyncSession, email: str, full_name: str, roles: list[Role]) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalars().first()
    if user:
        print(f"  [skip] User {email}")
        return user
    user = await roles_svc.create_user(
        db, email=email, full_name=full_name, password=DEMO_PASSWORD, roles=roles
    )
    print(f"  [new]  User {email} roles={user.roles}")
    return user


async def _upsert_invoice(
    db: AsyncSession, number: str, amount: Decimal, description: str | None, created_by: User
) -> None:
    result = await db.execute(select(Invoice).where(Invoice.invoice_number == number))
    if result.scalars().first():
        print(f"  [skip] Invoice {number}")
        return
    await invoice_store.create_invoice(
        db,
        invoice_number=number,
        amount=amount,
        description=description,
        created_by=created_by.id,
    )
    await db.commit()
    print(f"  [new]  Invoice {number}")


async def seed() -> None:
    engine = create_async_engine(settings.DATABASE_URL)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async with SessionLocal() as db:
        print("Users:")
        users = {}
        for email, name, roles in DEMO_USERS:
            users[email] = await _upsert_user(db, email, name, roles)

        print("Invoices:")
        clerk = users["clerk@example.com"]
        for number, amount, description in DEMO_INVOICES:
            await _upsert_invoice(db, number, amount, description, clerk)

    await engine.dispose()
    print(f"Done. Demo password for all users: {DEMO_PASSWORD}")


if __name__ == "__main__":
    asyncio.run(seed())
