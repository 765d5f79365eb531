"""
Database initialization script

Creates indexes and, optionally, the first admin account:
    python scripts/init_db.py
    ADMIN_EMAIL=... ADMIN_PASSWORD=... python scripts/init_db.py --admin
"""

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

from treinai.core.exceptions import TreinAIError
from treinai.core.logging import get_logger, setup_logging
from treinai.db.indexes import create_indexes
from treinai.db.mongo import close_mongo_connection, connect_to_mongo, get_database, get_users_collection
from treinai.services.user_service import create_user
from utils.constants import Role

setup_logging()
logger = get_logger("init_db")

COLLECTIONS = (
    "users",
    "professionals",
    "chats",
    "exercises",
    "supports",
    "advertisements",
    "locals",
    "pending_uploads",
    "processed_events",
)


async def seed_admin():
    """Creates the admin from ADMIN_EMAIL / ADMIN_PASSWORD, or promotes an existing account."""
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        raise ValueError("ADMIN_EMAIL and ADMIN_PASSWORD must be set to seed an admin")

    users = get_users_collection()
    existing = await users.find_one({"email": email.strip().lower()})
    if not existing:
        try:
            await create_user(os.getenv("ADMIN_USERNAME", "admin"), email, password, "free")
        except TreinAIError as e:
            logger.error(f"Could not create admin: {e.message}")
            raise

    await users.update_one({"email": email.strip().lower()}, {"$set": {"role": Role.ADMIN.value}})
    logger.info(f"Admin ready: {email}")


async def main(with_admin: bool = False):
    logger.info("=" * 60)
    logger.info("  TreinAI Database Setup")
    logger.info("=" * 60)

    await connect_to_mongo()
    try:
        await create_indexes()

        db = get_database()
        for name in COLLECTIONS:
            indexes = await db[name].index_information()
            count = await db[name].count_documents({})
            logger.info(f"  {name}: {count} documents, indexes: {', '.join(sorted(indexes))}")

        if with_admin:
            await seed_admin()

        logger.info("Database initialization complete")
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    asyncio.run(main(with_admin="--admin" in sys.argv))
