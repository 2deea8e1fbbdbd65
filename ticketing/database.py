from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import DATABASE_URL, SQL_ECHO
from .exceptions import DomainError, OperationFailedError
from .logger_config import logger

if not DATABASE_URL:
    raise ValueError("DATABASE_URL is not set in .env")

engine = create_async_engine(
    DATABASE_URL,
    echo=SQL_ECHO,
    future=True,
)
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_session():
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession, action: str):
    """
    Commit everything done inside the block as one unit.

    Domain errors roll back and propagate unchanged; driver errors roll back
    and surface as OperationFailedError carrying the underlying message.
    """
    try:
        yield session
        await session.commit()
    except DomainError:
        await session.rollback()
        raise
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception(f"{action} failed, transaction rolled back")
        reason = getattr(exc, "orig", None) or exc
        raise OperationFailedError(f"{action} failed: {reason}") from exc


async def create_tables():
    from . import models  # noqa: F401  registers the mappers on Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
