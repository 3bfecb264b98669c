from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from dealcase.load_secrets import db_name, db_pool_size, host, password, port, user


def create_postgres_engine() -> AsyncEngine:
    """Engine for the deployed server, backed by asyncpg."""
    postgres_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db_name}"
    return create_async_engine(
        postgres_url,
        pool_size=db_pool_size,
        max_overflow=db_pool_size,
        pool_pre_ping=True,
    )
