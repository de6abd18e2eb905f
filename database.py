"""
MongoDB connection used as an optional catalog source.

`db` is None when DATABASE_URL / DATABASE_NAME are not configured or the
server cannot be reached; callers fall back to the bundled catalog.
"""
from typing import List, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

import config
from logger import get_logger

logger = get_logger("database")


def _connect():
    if not config.DATABASE_URL or not config.DATABASE_NAME:
        return None
    try:
        client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=3000)
        client.admin.command("ping")
        logger.info(f"Connected to MongoDB database {config.DATABASE_NAME}")
        return client[config.DATABASE_NAME]
    except PyMongoError as e:
        logger.warning(f"MongoDB unavailable, using bundled catalog: {e}")
        return None


db = _connect()


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
    if db is None:
        raise RuntimeError("Database not available")
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
