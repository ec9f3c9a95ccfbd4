from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import OperationFailure
from dotenv import load_dotenv
import os
import logging
from pathlib import Path

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "clicklone"

# (collection, keys, options). expires_at TTL indexes drop pending results and tokens after 24h.
INDEXES = [
    ("users", "email", {"unique": True}),
    ("users", "user_id", {"unique": True}),
    ("system_settings", "key", {"unique": True}),
    ("generation_sessions", "session_id", {"unique": True}),
    ("pending_results", "result_id", {"unique": True}),
    ("pending_results", "expires_at", {"expireAfterSeconds": 0}),
    ("payment_tokens", "token", {"unique": True}),
    ("payment_tokens", "result_id", {}),
    ("payment_tokens", "expires_at", {"expireAfterSeconds": 0}),
    ("checkout_sessions", "session_id", {"unique": True}),
    ("orders", "order_id", {"unique": True}),
    ("orders", "checkout_session_id", {"unique": True, "sparse": True}),
    ("orders", [("status", 1), ("created_at", -1)], {}),
    ("stripe_events", "event_id", {"unique": True}),
    ("app_states", "session_id", {"unique": True}),
    ("page_views", [("created_at", -1)], {}),
    ("page_views", [("page_path", 1), ("created_at", -1)], {}),
    ("page_views", "session_id", {}),
    ("conversion_events", [("event_type", 1), ("created_at", -1)], {}),
    ("page_time_tracking", [("page_path", 1), ("created_at", -1)], {}),
    ("generations", [("created_at", -1)], {}),
    ("seo_settings", "page_path", {"unique": True}),
    ("seo_settings", "id", {"unique": True}),
    ("audit_logs", [("action", 1), ("timestamp", -1)], {}),
    ("audit_logs", "timestamp", {}),
]


class Database:
    client: AsyncIOMotorClient = None
    db = None

    async def connect(self):
        mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
        db_name = os.environ.get('DB_NAME', DEFAULT_DB_NAME)
        try:
            self.client = AsyncIOMotorClient(mongo_url)
            self.db = self.client[db_name]
            await self.db.command("ping")
            logger.info(f"Connected to MongoDB: {db_name}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

        await self._create_indexes()

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    def get_db(self):
        return self.db

    async def _create_indexes(self):
        created = 0
        for collection, keys, options in INDEXES:
            try:
                await self.db[collection].create_index(keys, **options)
                created += 1
            except OperationFailure as e:
                # An index with the same keys but other options already exists
                logger.warning(f"Index on {collection}.{keys} not created: {e}")
        logger.info(f"Database indexes ensured ({created}/{len(INDEXES)})")


# Global database instance
database = Database()
