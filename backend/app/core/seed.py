"""Seed the bootstrap admin account into the database."""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import AsyncSessionLocal
from app.models.user import User
from app.rules.approval_workflow import Role
from app.services import roles as roles_svc

logger = logging.getLogger(__name__)


async def seed_admin_user(db: AsyncSession) -> User | None:
    """Create the admin from SEED_ADMIN_* settings unless the email exists."""
    if not settings.SEED_ADMIN_PASSWORD:
        logger.warning("SEED_ADMIN_PASSWORD is empty; admin account not seeded.")
        return None

    existing = await db.execute(select(User).where(User.email == settings.SEED_ADMIN_EMAIL))
    if existing.scalars().first() is not None:
        logger.info("Admin %s already exists, skipping", settings.SEED_ADMIN_EMAIL)
        return None

    user = await roles_svc.create_user(
        db,
        email=settings.SEED_ADMIN_EMAIL,
        full_name="Administrator",
        password=settings.SEED_ADMIN_PASSWORD,
        roles=[Role.admin],
    )
    logger.info("Seeded admin user: %s", user.email)
    return user


async def run_seed() -> None:
    async with AsyncSessionLocal() as db:
        await seed_admin_user(db)
    logger.info("Seeding complete.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_seed())
