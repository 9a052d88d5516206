"""
MongoDB access helpers.

The client is created once from DATABASE_URL / DATABASE_NAME. Routes receive
the database through the `get_db` dependency.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import DATABASE_NAME, DATABASE_URL
from errors import BadRequestError

logger = logging.getLogger(__name__)

_client = None
db: Optional[Database] = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def oid(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise BadRequestError("Invalid ID")
    return ObjectId(id_str)


def ensure_indexes(database: Database) -> None:
    """Create the unique indexes the collections rely on."""
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["cart"].create_index([("user_id", ASCENDING)], unique=True)
    database["order"].create_index([("user_id", ASCENDING), ("created_at", ASCENDING)])
    logger.info("Indexes ensured on %s", database.name)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at / updated_at and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()
    data_dict["created_at"] = now_utc()
    data_dict["updated_at"] = now_utc()
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def _serialize_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _serialize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_doc(doc):
    """Turn a Mongo document into JSON-ready data with `id` in place of `_id`."""
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    return {k: _serialize_value(v) for k, v in doc.items()}
