from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from shared.settings import settings
from shared.logging import get_logger

# Import the SQLModel table definitions so SQLModel.metadata knows about them.
from shared.models_db import UserTable, SessionTable, QuoteRequestTable, QuoteResponseTable # noqa

logger = get_logger(__name__)

def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Creates an async engine; in-memory SQLite shares a single connection."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, echo=echo)

# Create an async engine instance
async_engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO_LOG)

# Create a configured "AsyncSession" class
AsyncSessionFactory = sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False, # Prevent SQLAlchemy from expiring objects after commit
    autoflush=False, # Disable autoflush, manage manually for more control
)

async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get an async database session."""
    async with AsyncSessionFactory() as session:
        try:
            yield session
            # Services commit their own units of work.
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

async def create_db_and_tables(engine: AsyncEngine = async_engine):
    """Utility function to create all tables defined by SQLModel metadata."""
    logger.info("Initializing database and creating tables if they don't exist...")
    async with engine.begin() as conn:
        try:
            await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables checked/created successfully.")
        except Exception as e:
            logger.error(f"Error creating database tables: {e}", exc_info=True)
            raise

async def close_db_connection(engine: AsyncEngine = async_engine):
    logger.info("Closing database connection pool...")
    await engine.dispose()
    logger.info("Database connection pool closed.")
