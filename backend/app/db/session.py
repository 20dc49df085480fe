import logging
from collections.abc import AsyncGenerator, Iterator
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.APP_ENV == "development",
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate connection-level DB failures into StoreUnavailableError."""
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.error("Database unavailable during %s: %s", operation, exc)
        raise StoreUnavailableError(
            f"The invoice store is temporarily unavailable ({operation}). Please retry."
        ) from exc
