"""
MongoDB connection and document helpers.

`db` is None when DATABASE_URL is not configured; callers check for that
before touching collections.
"""
from datetime import datetime, timezone
from typing import Optional, Union

from loguru import logger
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import DATABASE_URL, DATABASE_NAME


def connect(url: Optional[str] = DATABASE_URL, name: str = DATABASE_NAME) -> Optional[Database]:
    if not url:
        return None
    client = MongoClient(url)
    logger.info(f"Using MongoDB database {name!r}")
    return client[name]


db = connect()


def create_document(collection_name: str, data: Union[BaseModel, dict], database: Optional[Database] = None) -> str:
    """Insert a document stamped with created_at/updated_at and return its id as a string."""
    database = database if database is not None else db
    if database is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)
