"""MongoDB database setup and Beanie ODM initialization."""

from typing import TYPE_CHECKING

from beanie import init_beanie
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from docforge.config import settings

if TYPE_CHECKING:
    from beanie import Document

# Global database client and database references
client: AsyncMongoClient | None = None
database: AsyncDatabase | None = None


def get_document_models() -> list[type["Document"]]:
    """Get all Beanie document models for initialization.

    Returns:
        List of Document model classes.
    """
    from docforge.models import BatchCandidate, BatchSession, GeneratedDocument, Template

    return [
        Template,
        BatchSession,
        BatchCandidate,
        GeneratedDocument,
    ]


async def init_db(
    mongodb_url: str | None = None,
    mongodb_database: str | None = None,
    mongo_client: AsyncMongoClient | None = None,
) -> None:
    """Initialize the MongoDB database connection and Beanie ODM.

    Args:
        mongodb_url: Optional MongoDB connection URL. Defaults to settings.
        mongodb_database: Optional database name. Defaults to settings.
        mongo_client: Optional pre-configured client (for testing).
    """
    global client, database

    if mongo_client is not None:
        client = mongo_client
    else:
        url = mongodb_url or settings.mongodb_url
        client = AsyncMongoClient(
            url,
            tz_aware=True,
            minPoolSize=settings.min_pool_size,
            maxPoolSize=settings.max_pool_size,
        )

    db_name = mongodb_database or settings.mongodb_database
    database = client[db_name]

    await init_beanie(
        database=database,
        document_models=get_document_models(),
    )


async def close_db() -> None:
    """Close the MongoDB database connection."""
    global client, database

    if client is not None:
        await client.close()
        client = None
        database = None


def get_database() -> AsyncDatabase:
    """Get the current database instance.

    Returns:
        The active MongoDB database.

    Raises:
        RuntimeError: If database is not initialized.
    """
    if database is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return database
