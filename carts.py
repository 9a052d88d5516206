"""
Cart service: one cart document per account, holding product/quantity lines.
"""
import logging
from typing import Dict, List

from bson import ObjectId
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database

from database import now_utc, oid
from errors import NotFoundError

logger = logging.getLogger(__name__)


class AddToCartBody(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class UpdateCartItemBody(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=0)


class SyncCartItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class SyncCartBody(BaseModel):
    items: List[SyncCartItem]


def _get_or_create(db: Database, user_id: str) -> dict:
    return db["cart"].find_one_and_update(
        {"user_id": user_id},
        {"$setOnInsert": {"items": [], "created_at": now_utc(), "updated_at": now_utc()}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def _get_existing(db: Database, user_id: str) -> dict:
    cart = db["cart"].find_one({"user_id": user_id})
    if not cart:
        raise NotFoundError("Cart not found")
    return cart


def _save_items(db: Database, cart: dict, items: List[dict]) -> dict:
    return db["cart"].find_one_and_update(
        {"_id": cart["_id"]},
        {"$set": {"items": items, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )


def _active_product(db: Database, product_id: str):
    if not ObjectId.is_valid(product_id):
        return None
    product = db["product"].find_one({"_id": ObjectId(product_id)})
    if not product or not product.get("is_active", True):
        return None
    return product


def populate(db: Database, cart: dict) -> dict:
    """Join cart lines with their products and compute count and subtotal.

    Lines whose product has disappeared are left out of the response.
    """
    items = cart.get("items", [])
    ids = [ObjectId(it["product_id"]) for it in items if ObjectId.is_valid(it["product_id"])]
    products: Dict[str, dict] = {
        str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}})
    } if ids else {}

    populated = []
    for it in items:
        product = products.get(it["product_id"])
        if product is None:
            continue
        added_at = it.get("added_at")
        populated.append({
            "product_id": it["product_id"],
            "quantity": it["quantity"],
            "added_at": added_at.isoformat() if added_at else None,
            "product": {
                "id": str(product["_id"]),
                "name": product.get("name"),
                "brand": product.get("brand"),
                "price": product.get("price"),
                "original_price": product.get("original_price"),
                "images": product.get("images", []),
                "stock": product.get("stock", 0),
                "category": product.get("category"),
            },
        })

    updated_at = cart.get("updated_at")
    return {
        "id": str(cart["_id"]),
        "user_id": cart["user_id"],
        "items": populated,
        "item_count": sum(it["quantity"] for it in populated),
        "subtotal": sum(it["product"]["price"] * it["quantity"] for it in populated),
        "updated_at": updated_at.isoformat() if updated_at else None,
    }


def get_cart(db: Database, user_id: str) -> dict:
    return populate(db, _get_or_create(db, user_id))


def _increment_line(db: Database, cart_id, product_id: str, quantity: int):
    return db["cart"].find_one_and_update(
        {"_id": cart_id, "items.product_id": product_id},
        {"$inc": {"items.$.quantity": quantity}, "$set": {"updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )


def _append_line(db: Database, cart_id, product_id: str, quantity: int):
    line = {"product_id": product_id, "quantity": quantity, "added_at": now_utc()}
    return db["cart"].find_one_and_update(
        {"_id": cart_id, "items.product_id": {"$ne": product_id}},
        {"$push": {"items": line}, "$set": {"updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )


def add_to_cart(db: Database, user_id: str, body: AddToCartBody) -> dict:
    product = db["product"].find_one({"_id": oid(body.product_id)})
    if not product or not product.get("is_active", True):
        raise NotFoundError("Product not found")

    cart = _get_or_create(db, user_id)
    # Another request can add or drop the line between the two writes.
    for _ in range(3):
        updated = (_increment_line(db, cart["_id"], body.product_id, body.quantity)
                   or _append_line(db, cart["_id"], body.product_id, body.quantity))
        if updated is not None:
            break
    else:
        raise NotFoundError("Cart not found")

    logger.info("Cart %s: added %s x%d", user_id, body.product_id, body.quantity)
    return populate(db, updated)


def update_cart_item(db: Database, user_id: str, body: UpdateCartItemBody) -> dict:
    cart = _get_existing(db, user_id)
    if body.quantity <= 0:
        change = {"$pull": {"items": {"product_id": body.product_id}}, "$set": {"updated_at": now_utc()}}
    else:
        change = {"$set": {"items.$.quantity": body.quantity, "updated_at": now_utc()}}
    updated = db["cart"].find_one_and_update(
        {"_id": cart["_id"], "items.product_id": body.product_id},
        change,
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFoundError("Item not found in cart")
    return populate(db, updated)


def remove_from_cart(db: Database, user_id: str, product_id: str) -> dict:
    cart = _get_existing(db, user_id)
    updated = db["cart"].find_one_and_update(
        {"_id": cart["_id"]},
        {"$pull": {"items": {"product_id": product_id}}, "$set": {"updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    return populate(db, updated)


def clear_cart(db: Database, user_id: str) -> dict:
    cart = _get_existing(db, user_id)
    return populate(db, _save_items(db, cart, []))


def sync_cart(db: Database, user_id: str, body: SyncCartBody) -> dict:
    """Merge a client-side cart into the stored one, keeping the larger quantity."""
    cart = _get_or_create(db, user_id)
    items = cart.get("items", [])
    by_product = {it["product_id"]: it for it in items}

    for local in body.items:
        if _active_product(db, local.product_id) is None:
            continue
        existing = by_product.get(local.product_id)
        if existing is not None:
            existing["quantity"] = max(existing["quantity"], local.quantity)
        else:
            line = {"product_id": local.product_id, "quantity": local.quantity, "added_at": now_utc()}
            items.append(line)
            by_product[local.product_id] = line

    logger.info("Cart %s synced with %d client lines", user_id, len(body.items))
    return populate(db, _save_items(db, cart, items))


def delete_cart(db: Database, user_id: str) -> None:
    db["cart"].delete_one({"user_id": user_id})
