from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from tortoise import Tortoise
from tortoise.transactions import in_transaction
from app.core.config import DB_URL
import logging
from logging import INFO

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)
log = logging.getLogger("db")

# Define all models modules for the ORM
MODELS_MODULES = [
    "app.models.catalog",
    "app.models.inventory",
    "app.models.production",
]

async def init_db(db_url: str = DB_URL):
    """Initializes the Tortoise ORM connection and generates schemas."""
    try:
        await Tortoise.init(
            db_url=db_url,
            modules={"models": MODELS_MODULES},
        )
        # Generate the database schema (create tables)
        await Tortoise.generate_schemas()
        log.info("Database connection established and schemas generated.")
    except Exception as e:
        log.error(f"FATAL ERROR: Could not connect to database. Error: {e}")
        # Re-raise to prevent the application from starting without a database
        raise e

async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    log.info("Database connections closed.")


@asynccontextmanager
async def atomic(conn: Optional[Any] = None) -> AsyncIterator[Any]:
    """
    Yields a transactional connection.

    When the caller already holds a transaction ('conn'), the work joins it so
    that every write commits or rolls back together with the caller's writes.
    """
    if conn is not None:
        yield conn
        return
    async with in_transaction() as new_conn:
        yield new_conn
