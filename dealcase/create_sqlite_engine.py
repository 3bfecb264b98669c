import pathlib

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine


def create_sqlite_engine(file_path: pathlib.Path) -> AsyncEngine:
    """Engine for local runs and tests. The file is created on first connect."""
    sqlite_url = f"sqlite+aiosqlite:///{file_path}"
    return create_async_engine(url=sqlite_url, echo=False)
