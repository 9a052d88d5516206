"""
Order workflow.

Placing an order validates each line against current stock, snapshots the
product data into the order, computes totals, reserves stock and persists the
order. Stock is reserved with one conditional update per product; if any
reservation fails the ones already taken are put back, so an order either
takes all of its stock or none of it.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

import catalog
from config import FREE_SHIPPING_THRESHOLD, SHIPPING_FEE, TAX_RATE
from database import create_document, now_utc, oid, serialize_doc
from errors import BadRequestError, InsufficientStockError, NotFoundError
from schemas import Order, OrderItem, OrderStatus, PaymentStatus, ShippingAddress

logger = logging.getLogger(__name__)

STATUS_FLOW = ["pending", "confirmed", "processing", "shipped", "delivered"]
CANCELLABLE = {"pending", "confirmed"}


class OrderLine(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class CreateOrderBody(BaseModel):
    items: List[OrderLine] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: str = Field(..., min_length=1)
    notes: Optional[str] = None


class UpdateOrderBody(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None


def compute_totals(items: List[OrderItem]) -> Dict[str, float]:
    subtotal = sum(item.price * item.quantity for item in items)
    tax = subtotal * TAX_RATE
    shipping = 0.0 if subtotal > FREE_SHIPPING_THRESHOLD else SHIPPING_FEE
    return {
        "subtotal": subtotal,
        "tax": tax,
        "shipping": shipping,
        "total": subtotal + tax + shipping,
    }


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return True
    if target == "cancelled":
        return current in CANCELLABLE
    if current not in STATUS_FLOW or target not in STATUS_FLOW:
        return False
    return STATUS_FLOW.index(target) > STATUS_FLOW.index(current)


def _reserve_stock(db: Database, product_id: str, quantity: int) -> bool:
    product = db["product"].find_one_and_update(
        {"_id": oid(product_id), "is_active": True, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}},
        return_document=ReturnDocument.AFTER,
    )
    return product is not None


def _release_stock(db: Database, reserved: Dict[str, int]) -> None:
    for product_id, quantity in reserved.items():
        db["product"].update_one({"_id": oid(product_id)}, {"$inc": {"stock": quantity}})
        logger.info("Released %d units of %s", quantity, product_id)


def create(db: Database, user_id: str, body: CreateOrderBody) -> dict:
    wanted: Dict[str, int] = {}
    for line in body.items:
        wanted[line.product_id] = wanted.get(line.product_id, 0) + line.quantity

    products: Dict[str, dict] = {}
    for product_id, quantity in wanted.items():
        product = catalog.find_by_id(db, product_id)
        if product.get("stock", 0) < quantity:
            logger.warning("Order rejected for %s: %s has %d, wanted %d",
                           user_id, product["name"], product.get("stock", 0), quantity)
            raise InsufficientStockError(product["name"], product.get("stock", 0))
        products[product_id] = product

    items = []
    for line in body.items:
        product = products[line.product_id]
        images = product.get("images") or []
        items.append(OrderItem(
            product_id=line.product_id,
            product_name=product["name"],
            product_image=images[0] if images else "",
            price=float(product["price"]),
            quantity=line.quantity,
        ))

    totals = compute_totals(items)

    reserved: Dict[str, int] = {}
    try:
        for product_id, quantity in wanted.items():
            if not _reserve_stock(db, product_id, quantity):
                current = db["product"].find_one({"_id": oid(product_id)}) or products[product_id]
                logger.warning("Stock reservation lost for %s", product_id)
                if not current.get("is_active", True):
                    raise NotFoundError("Product not found")
                raise InsufficientStockError(current["name"], current.get("stock", 0))
            reserved[product_id] = quantity

        order = Order(
            user_id=user_id,
            items=items,
            shipping_address=body.shipping_address,
            payment_method=body.payment_method,
            notes=body.notes,
            **totals,
        )
        order_id = create_document(db, "order", order)
    except Exception:
        _release_stock(db, reserved)
        raise

    logger.info("Order %s placed by %s: %d lines, total %.2f", order_id, user_id, len(items), totals["total"])
    return db["order"].find_one({"_id": oid(order_id)})


def find_by_user(db: Database, user_id: str) -> List[dict]:
    cursor = db["order"].find({"user_id": user_id}).sort("created_at", DESCENDING)
    return [serialize_doc(o) for o in cursor]


def find_by_id(db: Database, order_id: str) -> dict:
    order = db["order"].find_one({"_id": oid(order_id)})
    if not order:
        raise NotFoundError("Order not found")
    return order


def find_by_id_and_user(db: Database, order_id: str, user_id: str) -> dict:
    order = db["order"].find_one({"_id": oid(order_id), "user_id": user_id})
    if not order:
        raise NotFoundError("Order not found")
    return order


def find_all(db: Database, status: Optional[str] = None, page: int = 1,
             limit: Optional[int] = 20) -> Dict[str, Any]:
    """List orders newest first. `limit=None` returns every matching order on one page."""
    filt: Dict[str, Any] = {}
    if status:
        filt["status"] = status
    cursor = db["order"].find(filt).sort("created_at", DESCENDING)
    if limit is not None:
        cursor = cursor.skip((page - 1) * limit).limit(limit)
    total = db["order"].count_documents(filt)
    return {
        "data": [serialize_doc(o) for o in cursor],
        "total": total,
        "page": page if limit is not None else 1,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit is not None else 1,
    }


def cancel(db: Database, order_id: str, user_id: str) -> dict:
    # Stock taken by the order is not returned to the catalog.
    order = find_by_id_and_user(db, order_id, user_id)
    if order["status"] not in CANCELLABLE:
        raise BadRequestError("Only pending or confirmed orders can be cancelled")
    updated = db["order"].find_one_and_update(
        {"_id": order["_id"], "status": {"$in": list(CANCELLABLE)}},
        {"$set": {"status": "cancelled", "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise BadRequestError("Only pending or confirmed orders can be cancelled")
    logger.info("Order %s cancelled by %s", order_id, user_id)
    return updated


def update(db: Database, order_id: str, body: UpdateOrderBody) -> dict:
    order = find_by_id(db, order_id)
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise BadRequestError("Nothing to update")
    if "status" in changes and not can_transition(order["status"], changes["status"]):
        raise BadRequestError(f"Cannot change order status from {order['status']} to {changes['status']}")
    changes["updated_at"] = now_utc()
    updated = db["order"].find_one_and_update(
        {"_id": order["_id"], "status": order["status"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        logger.warning("Order %s changed status while updating", order_id)
        raise BadRequestError("Order status changed, please retry")
    logger.info("Order %s updated: %s", order_id, {k: v for k, v in changes.items() if k != "updated_at"})
    return updated
