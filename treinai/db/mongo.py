"""
treinai/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- One collection per document type (users, professionals, chats, ...)
- Health checks and retry logic
- Optional client-session transactions
"""

from contextlib import asynccontextmanager
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import AsyncIterator, Optional
import asyncio
from treinai.core.config import settings
from treinai.core.logging import get_logger

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None

USERS = "users"
PROFESSIONALS = "professionals"
CHATS = "chats"
EXERCISES = "exercises"
SUPPORTS = "supports"
ADVERTISEMENTS = "advertisements"
LOCALS = "locals"
PENDING_UPLOADS = "pending_uploads"
PROCESSED_EVENTS = "processed_events"


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                minPoolSize=10,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
                tz_aware=False,
            )

            _database = _client[settings.MONGODB_DB_NAME]

            # Verify connection
            await _client.admin.command("ping")

            logger.info(f"Connected to MongoDB: {settings.MONGODB_DB_NAME}")
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None


def use_database(client, database):
    """
    Installs an already-built client/database pair (used by tests and scripts).
    """
    global _client, _database
    _client = client
    _database = database


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_collection(name: str) -> AsyncIOMotorCollection:
    return get_database()[name]


def get_users_collection() -> AsyncIOMotorCollection:
    """Accounts with embedded profile, workouts, history, stats and nutrition plan."""
    return get_collection(USERS)


def get_professionals_collection() -> AsyncIOMotorCollection:
    """Coach profiles with their embedded student list."""
    return get_collection(PROFESSIONALS)


def get_chats_collection() -> AsyncIOMotorCollection:
    """Chats with embedded members and messages."""
    return get_collection(CHATS)


def get_exercises_collection() -> AsyncIOMotorCollection:
    return get_collection(EXERCISES)


def get_supports_collection() -> AsyncIOMotorCollection:
    return get_collection(SUPPORTS)


def get_advertisements_collection() -> AsyncIOMotorCollection:
    return get_collection(ADVERTISEMENTS)


def get_locals_collection() -> AsyncIOMotorCollection:
    return get_collection(LOCALS)


def get_pending_uploads_collection() -> AsyncIOMotorCollection:
    """Venue submissions waiting for their subscription to be paid."""
    return get_collection(PENDING_UPLOADS)


def get_processed_events_collection() -> AsyncIOMotorCollection:
    """Payment webhook event ids already handled."""
    return get_collection(PROCESSED_EVENTS)


@asynccontextmanager
async def transaction() -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
    """
    Yields a session bound to an open transaction, or None when
    transactions are disabled. Pass the yielded value as ``session=``
    to every operation that must commit together.

    The transaction commits when the block exits cleanly and aborts when
    it raises.
    """
    if not settings.MONGODB_USE_TRANSACTIONS:
        yield None
        return

    if _client is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )

    async with await _client.start_session() as session:
        async with session.start_transaction():
            yield session
