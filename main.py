import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.database import Database
from starlette.exceptions import HTTPException

import accounts
import carts
import catalog
import database
import orders
from auth import ensure_role, get_current_user
from config import LOG_LEVEL, PORT
from database import get_db, serialize_doc
from errors import error_body
from schemas import OrderStatus, Product, ProductCategory
from seed import seed as seed_catalog

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
    yield


app = FastAPI(title="Watch Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------- Errors -----------------------
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.status_code, str(exc.detail)),
                        headers=getattr(exc, "headers", None))


def _validation_message(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "Invalid value"))
    return ", ".join(parts) or "Validation failed"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=error_body(400, _validation_message(exc.errors())))


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content=error_body(400, _validation_message(exc.errors())))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(500, "Internal server error"))


def admin_user(user=Depends(get_current_user)):
    ensure_role(user, "admin")
    return user


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"success": True, "message": "Watch Store API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    db = database.db
    if db is not None:
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
        except Exception as e:
            logger.warning("Database check failed: %s", e)
            response["database"] = f"❌ Error: {str(e)[:80]}"
    return {"success": True, "data": response}


# ----------------------- Auth -----------------------
@app.post("/auth/register", status_code=201)
def register(body: accounts.RegisterBody, db: Database = Depends(get_db)):
    data = accounts.register(db, body)
    return {"success": True, "data": data, "message": "Registration successful"}


@app.post("/auth/login")
def login(body: accounts.LoginBody, db: Database = Depends(get_db)):
    data = accounts.login(db, body)
    return {"success": True, "data": data, "message": "Login successful"}


# ----------------------- Products -----------------------
def _split_brands(brand: Optional[List[str]]) -> List[str]:
    brands = []
    for value in brand or []:
        brands.extend(b for b in value.split(",") if b.strip())
    return brands


@app.get("/products")
def list_products(
    search: Optional[str] = None,
    category: Optional[ProductCategory] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    brand: Optional[List[str]] = Query(None),
    sort: catalog.SortBy = "newest",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
):
    query = catalog.ProductQuery(
        search=search,
        category=category,
        min_price=min_price,
        max_price=max_price,
        brands=_split_brands(brand),
        sort=sort,
        page=page,
        limit=limit,
    )
    return {"success": True, **catalog.find_all(db, query)}


@app.get("/products/latest")
def latest_products(limit: int = Query(8, ge=1, le=100), db: Database = Depends(get_db)):
    return {"success": True, "data": catalog.find_latest(db, limit)}


@app.get("/products/featured")
def featured_products(limit: int = Query(4, ge=1, le=100), db: Database = Depends(get_db)):
    return {"success": True, "data": catalog.find_featured(db, limit)}


@app.get("/products/search")
def search_products(q: str = "", db: Database = Depends(get_db)):
    return {"success": True, "data": catalog.search(db, q)}


@app.get("/products/brands")
def product_brands(db: Database = Depends(get_db)):
    return {"success": True, "data": catalog.get_brands(db)}


@app.get("/products/category/{category}")
def products_by_category(category: ProductCategory, limit: Optional[int] = Query(None, ge=1, le=100),
                         db: Database = Depends(get_db)):
    return {"success": True, "data": catalog.find_by_category(db, category, limit)}


@app.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(catalog.find_by_id(db, product_id))}


@app.post("/products", status_code=201)
def create_product(body: Product, user=Depends(admin_user), db: Database = Depends(get_db)):
    product = catalog.create(db, body)
    return {"success": True, "data": serialize_doc(product), "message": "Product created successfully"}


@app.put("/products/{product_id}")
def update_product(product_id: str, body: catalog.ProductUpdate, user=Depends(admin_user),
                   db: Database = Depends(get_db)):
    product = catalog.update(db, product_id, body)
    return {"success": True, "data": serialize_doc(product), "message": "Product updated successfully"}


@app.delete("/products/{product_id}")
def delete_product(product_id: str, user=Depends(admin_user), db: Database = Depends(get_db)):
    catalog.remove(db, product_id)
    return {"success": True, "message": "Product deleted successfully"}


# ----------------------- Cart -----------------------
@app.get("/cart")
def get_cart(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": carts.get_cart(db, user["id"])}


@app.post("/cart/add")
def add_to_cart(body: carts.AddToCartBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": carts.add_to_cart(db, user["id"], body), "message": "Item added to cart"}


@app.put("/cart/update")
def update_cart_item(body: carts.UpdateCartItemBody, user=Depends(get_current_user),
                     db: Database = Depends(get_db)):
    return {"success": True, "data": carts.update_cart_item(db, user["id"], body), "message": "Cart item updated"}


@app.delete("/cart/item/{product_id}")
def remove_from_cart(product_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": carts.remove_from_cart(db, user["id"], product_id),
            "message": "Item removed from cart"}


@app.delete("/cart/clear")
def clear_cart(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": carts.clear_cart(db, user["id"]), "message": "Cart cleared"}


@app.post("/cart/sync")
def sync_cart(body: carts.SyncCartBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": carts.sync_cart(db, user["id"], body), "message": "Cart synced successfully"}


# ----------------------- Orders -----------------------
@app.post("/orders", status_code=201)
def create_order(body: orders.CreateOrderBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    order = orders.create(db, user["id"], body)
    return {"success": True, "data": serialize_doc(order), "message": "Order placed successfully"}


@app.get("/orders")
def my_orders(user=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": orders.find_by_user(db, user["id"])}


@app.get("/orders/admin/all")
def all_orders(user=Depends(admin_user), db: Database = Depends(get_db)):
    result = orders.find_all(db, limit=None)
    return {"success": True, "data": result["data"]}


@app.put("/orders/admin/{order_id}")
def admin_update_order(order_id: str, body: orders.UpdateOrderBody, user=Depends(admin_user),
                       db: Database = Depends(get_db)):
    order = orders.update(db, order_id, body)
    return {"success": True, "data": serialize_doc(order), "message": "Order updated successfully"}


@app.get("/orders/{order_id}")
def my_order(order_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(orders.find_by_id_and_user(db, order_id, user["id"]))}


@app.put("/orders/{order_id}/cancel")
def cancel_order(order_id: str, user=Depends(get_current_user), db: Database = Depends(get_db)):
    order = orders.cancel(db, order_id, user["id"])
    return {"success": True, "data": serialize_doc(order), "message": "Order cancelled successfully"}


# ----------------------- Users -----------------------
@app.get("/users/me")
def get_profile(user=Depends(get_current_user)):
    return {"success": True, "data": user}


@app.put("/users/me")
def update_profile(body: accounts.UpdateProfileBody, user=Depends(get_current_user),
                   db: Database = Depends(get_db)):
    updated = accounts.update_profile(db, user["id"], body)
    return {"success": True, "data": accounts.to_public(updated), "message": "Profile updated successfully"}


@app.delete("/users/me")
def delete_account(user=Depends(get_current_user), db: Database = Depends(get_db)):
    accounts.remove(db, user["id"])
    return {"success": True, "message": "Account deleted successfully"}


# ----------------------- Admin -----------------------
@app.get("/admin/users")
def admin_list_users(user=Depends(admin_user), db: Database = Depends(get_db)):
    return {"success": True, "data": accounts.find_all(db)}


@app.get("/admin/users/{user_id}")
def admin_get_user(user_id: str, user=Depends(admin_user), db: Database = Depends(get_db)):
    return {"success": True, "data": accounts.to_public(accounts.find_by_id(db, user_id))}


@app.put("/admin/users/{user_id}/toggle-active")
def admin_toggle_user(user_id: str, body: accounts.ToggleActiveBody, user=Depends(admin_user),
                      db: Database = Depends(get_db)):
    updated = accounts.set_active(db, user_id, body.is_active)
    return {"success": True, "data": accounts.to_public(updated),
            "message": "User activated" if body.is_active else "User deactivated"}


@app.put("/admin/users/{user_id}/role")
def admin_set_role(user_id: str, body: accounts.SetRoleBody, user=Depends(admin_user),
                   db: Database = Depends(get_db)):
    updated = accounts.set_role(db, user_id, body.role)
    return {"success": True, "data": accounts.to_public(updated), "message": f"User role updated to {body.role}"}


@app.get("/admin/users/{user_id}/orders")
def admin_user_orders(user_id: str, user=Depends(admin_user), db: Database = Depends(get_db)):
    return {"success": True, "data": orders.find_by_user(db, user_id)}


@app.get("/admin/orders")
def admin_list_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user=Depends(admin_user),
    db: Database = Depends(get_db),
):
    return {"success": True, **orders.find_all(db, status=status, page=page, limit=limit)}


@app.get("/admin/orders/{order_id}")
def admin_get_order(order_id: str, user=Depends(admin_user), db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(orders.find_by_id(db, order_id))}


class StatusBody(orders.UpdateOrderBody):
    status: OrderStatus


@app.put("/admin/orders/{order_id}/status")
def admin_update_order_status(order_id: str, body: StatusBody, user=Depends(admin_user),
                              db: Database = Depends(get_db)):
    order = orders.update(db, order_id, body)
    return {"success": True, "data": serialize_doc(order), "message": f"Order status updated to {body.status}"}


@app.get("/admin/products")
def admin_list_products(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user=Depends(admin_user),
    db: Database = Depends(get_db),
):
    query = catalog.ProductQuery(search=search, page=page, limit=limit, include_inactive=True)
    return {"success": True, **catalog.find_all(db, query)}


@app.get("/admin/products/{product_id}")
def admin_get_product(product_id: str, user=Depends(admin_user), db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(catalog.find_by_id_admin(db, product_id))}


# ----------------------- Seed Demo Data -----------------------
@app.post("/seed")
def seed(db: Database = Depends(get_db)):
    return {"success": True, "data": seed_catalog(db)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
