"""
Database Helpers

MongoDB access for the API. The module-level ``db`` handle is opened at import
time; a bad or missing connection is logged and leaves ``db`` as ``None`` so
individual requests fail instead of the whole process.

Collections:
- "user"        -> person records (Customer and Lead share it, told apart by ``type``)
- "exhibitions" -> exhibitions, unique on ``name``
- "leads"       -> legacy lead documents, only touched by the city migration
- "migrations"  -> markers for one-time startup migrations
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from config import config
from errors import StoreError

logger = logging.getLogger("leads")

PERSON_COLLECTION = "user"
EXHIBITION_COLLECTION = "exhibitions"
LEGACY_LEAD_COLLECTION = "leads"
MIGRATION_COLLECTION = "migrations"

client = None
db = None

try:
    client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = client[config.DATABASE_NAME]
except PyMongoError as e:
    logger.error(f"MongoDB connection error: {e}")


def collection(name: str):
    if db is None:
        raise StoreError("Database not configured")
    return db[name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert one document, stamping createdAt/updatedAt. Returns the stored document."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True, exclude_none=True)
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("createdAt", now)
    doc.setdefault("updatedAt", now)
    result = collection(collection_name).insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    projection: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = collection(collection_name).find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def is_connected() -> bool:
    if db is None:
        return False
    try:
        db.list_collection_names()
        return True
    except PyMongoError:
        return False


def ensure_indexes() -> None:
    people = collection(PERSON_COLLECTION)
    people.create_index([("email", ASCENDING)])
    people.create_index([("mobileNumber", ASCENDING)])
    people.create_index([("createdAt", DESCENDING)])
    collection(EXHIBITION_COLLECTION).create_index([("name", ASCENDING)], unique=True)
    logger.info("Indexes ensured")


# -------------------- Startup migrations --------------------

DEFAULT_CITY_MIGRATION = "default-city"

_MISSING_CITY = {"$or": [{"city": {"$exists": False}}, {"city": None}, {"city": ""}]}


def migrate_default_city(default_city: Optional[str] = None) -> Dict[str, int]:
    """
    Fill in ``city`` on documents written before the field existed.

    Runs once per database: a marker in the migrations collection makes later
    calls a no-op. Returns the number of documents changed per collection.
    """
    markers = collection(MIGRATION_COLLECTION)
    if markers.find_one({"_id": DEFAULT_CITY_MIGRATION}):
        logger.debug("Migration default-city already applied")
        return {}

    city = default_city or config.DEFAULT_CITY
    changed = {}
    for name in (PERSON_COLLECTION, EXHIBITION_COLLECTION, LEGACY_LEAD_COLLECTION):
        result = collection(name).update_many(_MISSING_CITY, {"$set": {"city": city}})
        changed[name] = result.modified_count
        logger.info(f"Migration default-city | {name}: {result.modified_count} updated")

    markers.insert_one({"_id": DEFAULT_CITY_MIGRATION, "appliedAt": utcnow(), "changed": changed})
    return changed


def run_startup_tasks() -> None:
    """Index creation and migrations, each on its own; failures are logged, never fatal."""
    for step in (ensure_indexes, migrate_default_city):
        try:
            step()
        except (PyMongoError, StoreError) as e:
            logger.error(f"Startup task {step.__name__} failed: {getattr(e, 'detail', e)}")
