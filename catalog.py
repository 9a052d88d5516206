"""
Catalog service: product reads with filtering/sorting/pagination and admin writes.
"""
import logging
import math
import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from database import create_document, now_utc, oid, serialize_doc
from errors import NotFoundError
from schemas import Product, ProductCategory, ProductSpecification

logger = logging.getLogger(__name__)

SortBy = Literal["price-asc", "price-desc", "name-asc", "name-desc", "newest"]

SORT_OPTIONS = {
    "price-asc": [("price", ASCENDING)],
    "price-desc": [("price", DESCENDING)],
    "name-asc": [("name", ASCENDING)],
    "name-desc": [("name", DESCENDING)],
    "newest": [("created_at", DESCENDING)],
}


def _icontains(value: str) -> dict:
    return {"$regex": re.escape(value), "$options": "i"}


class ProductQuery(BaseModel):
    """Validated catalog query, translated to a Mongo filter by `to_filter`."""
    search: Optional[str] = None
    category: Optional[ProductCategory] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    brands: List[str] = []
    sort: SortBy = "newest"
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    include_inactive: bool = False

    def to_filter(self) -> Dict[str, Any]:
        clauses: List[Dict[str, Any]] = []
        if not self.include_inactive:
            clauses.append({"is_active": True})
        if self.search:
            clauses.append({"$or": [
                {"name": _icontains(self.search)},
                {"brand": _icontains(self.search)},
                {"description": _icontains(self.search)},
            ]})
        if self.category:
            clauses.append({"category": self.category})
        price: Dict[str, float] = {}
        if self.min_price is not None:
            price["$gte"] = self.min_price
        if self.max_price is not None:
            price["$lte"] = self.max_price
        if price:
            clauses.append({"price": price})
        brands = [b.strip() for b in self.brands if b and b.strip()]
        if brands:
            clauses.append({"$or": [{"brand": _icontains(b)} for b in brands]})
        if not clauses:
            return {}
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    def to_sort(self):
        return SORT_OPTIONS[self.sort]


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    short_description: Optional[str] = None
    images: Optional[List[str]] = None
    category: Optional[ProductCategory] = None
    specifications: Optional[ProductSpecification] = None
    stock: Optional[int] = Field(None, ge=0)
    is_new: Optional[bool] = None
    is_featured: Optional[bool] = None
    is_active: Optional[bool] = None


def _public(doc):
    return serialize_doc(doc)


def find_all(db: Database, query: ProductQuery) -> Dict[str, Any]:
    filt = query.to_filter()
    skip = (query.page - 1) * query.limit
    cursor = db["product"].find(filt).sort(query.to_sort()).skip(skip).limit(query.limit)
    data = [_public(p) for p in cursor]
    total = db["product"].count_documents(filt)
    return {
        "data": data,
        "total": total,
        "page": query.page,
        "limit": query.limit,
        "total_pages": math.ceil(total / query.limit),
    }


def find_by_id(db: Database, product_id: str) -> dict:
    product = db["product"].find_one({"_id": oid(product_id)})
    if not product or not product.get("is_active", True):
        raise NotFoundError("Product not found")
    return product


def find_by_id_admin(db: Database, product_id: str) -> dict:
    product = db["product"].find_one({"_id": oid(product_id)})
    if not product:
        raise NotFoundError("Product not found")
    return product


def find_latest(db: Database, limit: int = 8) -> List[dict]:
    cursor = db["product"].find({"is_active": True, "is_new": True}).sort("created_at", DESCENDING).limit(limit)
    return [_public(p) for p in cursor]


def find_featured(db: Database, limit: int = 4) -> List[dict]:
    cursor = db["product"].find({"is_active": True, "is_featured": True}).limit(limit)
    return [_public(p) for p in cursor]


def find_by_category(db: Database, category: str, limit: Optional[int] = None) -> List[dict]:
    cursor = db["product"].find({"is_active": True, "category": category}).sort("created_at", DESCENDING)
    if limit:
        cursor = cursor.limit(limit)
    return [_public(p) for p in cursor]


def search(db: Database, text: str, limit: int = 20) -> List[dict]:
    query = ProductQuery(search=text or None, limit=limit)
    cursor = db["product"].find(query.to_filter()).limit(limit)
    return [_public(p) for p in cursor]


def get_brands(db: Database) -> List[str]:
    return sorted(db["product"].distinct("brand", {"is_active": True}))


def create(db: Database, body: Product) -> dict:
    product_id = create_document(db, "product", body)
    logger.info("Product %s created (%s %s)", product_id, body.brand, body.name)
    return db["product"].find_one({"_id": oid(product_id)})


def update(db: Database, product_id: str, body: ProductUpdate) -> dict:
    changes = body.model_dump(exclude_none=True)
    changes["updated_at"] = now_utc()
    res = db["product"].update_one({"_id": oid(product_id)}, {"$set": changes})
    if res.matched_count == 0:
        raise NotFoundError("Product not found")
    logger.info("Product %s updated: %s", product_id, sorted(changes))
    return db["product"].find_one({"_id": oid(product_id)})


def remove(db: Database, product_id: str) -> None:
    res = db["product"].update_one(
        {"_id": oid(product_id)},
        {"$set": {"is_active": False, "updated_at": now_utc()}},
    )
    if res.matched_count == 0:
        raise NotFoundError("Product not found")
    logger.info("Product %s soft-deleted", product_id)
