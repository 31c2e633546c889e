"""
MongoDB access for the portfolio API.

`db` is None when DATABASE_URL is not set; callers go through
`get_collection`, which refuses to run without a configured database.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

import config

logger = logging.getLogger(__name__)

# Collections
COLL_ADMINS = "admin"
COLL_ABOUT = "about"
COLL_SKILLS = "skillcategory"
COLL_PROJECTS = "project"
COLL_EXPERIENCE = "experience"

client = None
db = None

if config.DATABASE_URL:
    client = MongoClient(config.DATABASE_URL, tz_aware=True, tzinfo=timezone.utc)
    db = client[config.DATABASE_NAME]


class DatabaseNotConfigured(RuntimeError):
    pass


def get_collection(name: str):
    if db is None:
        raise DatabaseNotConfigured("Database not configured")
    return db[name]


def ensure_indexes():
    if db is None:
        logger.warning("DATABASE_URL not set; skipping index creation")
        return
    db[COLL_ADMINS].create_index([("email", ASCENDING)], unique=True)
    db[COLL_PROJECTS].create_index([("slug", ASCENDING)], unique=True)
    db[COLL_SKILLS].create_index([("name", ASCENDING)], unique=True)
    logger.info("Indexes ensured on database %s", db.name)


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a path id; malformed ids resolve to None so lookups miss."""
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def utc_values(value: Any) -> Any:
    """Mark stored datetimes as UTC, recursing into embedded documents."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, dict):
        return {k: utc_values(v) for k, v in value.items()}
    if isinstance(value, list):
        return [utc_values(v) for v in value]
    return value


def serialize(doc: Optional[dict]) -> Optional[dict]:
    # normalize _id to string id
    if doc is None:
        return None
    doc = utc_values(dict(doc))
    doc["id"] = str(doc.pop("_id"))
    return doc


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    ts = now()
    doc.setdefault("created_at", ts)
    doc["updated_at"] = ts
    result = get_collection(collection_name).insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
) -> List[dict]:
    cursor = get_collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(d) for d in cursor]


def get_document(collection_name: str, filter_dict: Dict[str, Any]) -> Optional[dict]:
    return serialize(get_collection(collection_name).find_one(filter_dict))
