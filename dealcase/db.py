from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dealcase.models.schemas import Base


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Centralized session factory to avoid creating it in router modules."""
    return async_sessionmaker(
        autocommit=False,
        class_=AsyncSession,
        autoflush=True,
        bind=engine,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create tables if not exists"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
