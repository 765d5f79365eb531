"""
treinai/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
- TTL index for webhook idempotency records
"""

from pymongo import ASCENDING, DESCENDING, GEOSPHERE

from treinai.db.mongo import (
    get_users_collection,
    get_professionals_collection,
    get_chats_collection,
    get_exercises_collection,
    get_supports_collection,
    get_advertisements_collection,
    get_locals_collection,
    get_pending_uploads_collection,
    get_processed_events_collection,
)
from treinai.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()
        professionals = get_professionals_collection()
        chats = get_chats_collection()
        exercises = get_exercises_collection()
        supports = get_supports_collection()
        ads = get_advertisements_collection()
        locals_ = get_locals_collection()
        pending = get_pending_uploads_collection()
        events = get_processed_events_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS
        # ==============================================

        await users.create_index("email", unique=True, name="email_unique")
        logger.debug("Created unique index on users.email")

        await users.create_index("plan_info.subscription_id", name="subscription_idx", sparse=True)
        await users.create_index("plan_info.customer_id", name="customer_idx", sparse=True)
        await users.create_index([("created_at", DESCENDING)], name="created_at_idx")
        logger.debug("Created billing and listing indexes on users")

        # ==============================================
        # PROFESSIONALS
        # ==============================================

        await professionals.create_index("professional_id", unique=True, name="professional_id_unique")
        await professionals.create_index("user_id", unique=True, name="professional_user_unique")
        logger.debug("Created unique indexes on professionals")

        await professionals.create_index(
            [("specialty", ASCENDING), ("students.user_id", ASCENDING)],
            name="specialty_students_idx"
        )
        await professionals.create_index(
            [("country", ASCENDING), ("state", ASCENDING), ("city", ASCENDING)],
            name="professional_location_idx"
        )
        await professionals.create_index([("location", GEOSPHERE)], name="professional_geo_idx", sparse=True)
        logger.debug("Created lookup indexes on professionals")

        # ==============================================
        # CHATS
        # ==============================================

        await chats.create_index("chat_id", unique=True, name="chat_id_unique")
        # Direct chats only; group chats have no pair_id
        await chats.create_index(
            "pair_id",
            unique=True,
            name="pair_id_unique",
            partialFilterExpression={"pair_id": {"$type": "string"}}
        )
        await chats.create_index("members.user_id", name="chat_members_idx")
        logger.debug("Created indexes on chats")

        # ==============================================
        # CATALOG / SUPPORT / ADS / LOCALS
        # ==============================================

        await exercises.create_index(
            "name",
            unique=True,
            name="exercise_name_unique",
            collation={"locale": "en", "strength": 2}
        )
        await supports.create_index("support_id", unique=True, name="support_id_unique")
        await supports.create_index([("private", ASCENDING), ("created_at", DESCENDING)], name="support_public_idx")

        await ads.create_index("ad_id", unique=True, name="ad_id_unique")
        await ads.create_index("user_id", name="ad_user_idx")
        await ads.create_index(
            [("status", ASCENDING), ("country", ASCENDING), ("state", ASCENDING), ("city", ASCENDING)],
            name="ad_location_idx"
        )

        await locals_.create_index("local_id", unique=True, name="local_id_unique")
        await locals_.create_index("subscription_id", name="local_subscription_idx", sparse=True)
        await locals_.create_index("user_id", name="local_user_idx")
        await locals_.create_index([("location", GEOSPHERE)], name="local_geo_idx", sparse=True)

        await pending.create_index("pending_id", unique=True, name="pending_id_unique")
        await pending.create_index("checkout_session_id", name="pending_session_idx", sparse=True)
        await pending.create_index("subscription_id", name="pending_subscription_idx", sparse=True)
        logger.debug("Created catalog, support, ad and local indexes")

        # ==============================================
        # WEBHOOK IDEMPOTENCY
        # ==============================================

        await events.create_index("event_id", unique=True, name="event_id_unique")
        await events.create_index(
            "created_at",
            expireAfterSeconds=60 * 60 * 24 * 90,  # 90 days
            name="processed_event_ttl_idx"
        )
        logger.debug("Created indexes on processed_events")

        logger.info("All database indexes created")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise
