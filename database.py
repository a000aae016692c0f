"""
MongoDB access for the frame store.

Collections are named after the lowercase schema class (``product``,
``order``, ``banner``, ``category``, ``cart``) plus the ``counter`` and
``idempotency`` bookkeeping collections.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from settings import settings

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.DATABASE_URL:
    # MongoClient connects lazily, so this does not block import.
    client = MongoClient(settings.DATABASE_URL, tz_aware=True)
    db = client[settings.DATABASE_NAME]
    logger.info("Using MongoDB database '%s'", settings.DATABASE_NAME)
else:
    logger.warning("DATABASE_URL is not set. Database-backed endpoints will fail.")


def get_db() -> Database:
    """FastAPI dependency returning the active database handle."""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(exclude_none=True)
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def is_object_id(value: str) -> bool:
    return ObjectId.is_valid(value) and str(ObjectId(value)) == value


def parse_object_id(value: str, label: str = "ID") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a stored document JSON friendly: ``_id`` becomes ``id``."""
    if not doc:
        return doc
    doc = dict(doc)
    if doc.get("_id") is not None:
        doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, dict):
            doc[k] = serialize_doc(v)
        elif isinstance(v, list):
            doc[k] = [serialize_doc(i) if isinstance(i, dict) else (str(i) if isinstance(i, ObjectId) else i) for i in v]
    return doc


def ensure_indexes(database: Database) -> None:
    database["product"].create_index([("sku", ASCENDING)], unique=True)
    database["product"].create_index([("category", ASCENDING), ("sub_category", ASCENDING)])
    database["product"].create_index([("is_active", ASCENDING), ("is_featured", ASCENDING)])
    database["product"].create_index([("created_at", DESCENDING)])
    database["order"].create_index([("order_number", ASCENDING)], unique=True)
    database["order"].create_index([("customer.email", ASCENDING)])
    database["order"].create_index([("status", ASCENDING)])
    database["banner"].create_index([("type", ASCENDING), ("is_active", ASCENDING), ("display_order", ASCENDING)])
    database["banner"].create_index([("original_default_id", ASCENDING)])
    database["category"].create_index([("slug", ASCENDING)], unique=True)
    database["cart"].create_index([("session_id", ASCENDING)])
    logger.info("MongoDB indexes ensured")
