"""
Account service: registration, login, self-service profile and admin management.
"""
import logging
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import carts
from auth import create_token, hash_password, verify_password
from database import create_document, now_utc, oid, serialize_doc
from errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from schemas import Role, User

logger = logging.getLogger(__name__)


class RegisterBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = None


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class UpdateProfileBody(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None


class ToggleActiveBody(BaseModel):
    is_active: bool


class SetRoleBody(BaseModel):
    role: Role


def to_public(user: dict) -> dict:
    doc = serialize_doc(user)
    doc.pop("password_hash", None)
    return doc


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def register(db: Database, body: RegisterBody) -> dict:
    email = _normalize_email(body.email)
    if db["user"].find_one({"email": email}):
        raise ConflictError("Email already registered")
    user = User(
        email=email,
        password_hash=hash_password(body.password),
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise ConflictError("Email already registered")
    stored = db["user"].find_one({"_id": oid(user_id)})
    logger.info("Account %s registered", user_id)
    return {"user": to_public(stored), "access_token": create_token(stored)}


def login(db: Database, body: LoginBody) -> dict:
    user = db["user"].find_one({"email": _normalize_email(body.email)})
    if not user:
        raise UnauthorizedError("Invalid credentials")
    if not user.get("is_active", True):
        logger.warning("Login refused for deactivated account %s", user["_id"])
        raise ForbiddenError("Your account has been deactivated. Please contact support.")
    if not verify_password(body.password, user.get("password_hash", "")):
        raise UnauthorizedError("Invalid credentials")
    return {"user": to_public(user), "access_token": create_token(user)}


def find_by_id(db: Database, user_id: str) -> dict:
    user = db["user"].find_one({"_id": oid(user_id)})
    if not user:
        raise NotFoundError("User not found")
    return user


def find_all(db: Database) -> List[dict]:
    return [to_public(u) for u in db["user"].find().sort("created_at", -1)]


def _set(db: Database, user_id: str, changes: dict) -> dict:
    changes["updated_at"] = now_utc()
    user = db["user"].find_one_and_update(
        {"_id": oid(user_id)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFoundError("User not found")
    return user


def update_profile(db: Database, user_id: str, body: UpdateProfileBody) -> dict:
    changes = body.model_dump(exclude_none=True)
    if "email" in changes:
        changes["email"] = _normalize_email(changes["email"])
        other = db["user"].find_one({"email": changes["email"], "_id": {"$ne": oid(user_id)}})
        if other:
            raise ConflictError("Email already registered")
    if "password" in changes:
        changes["password_hash"] = hash_password(changes.pop("password"))
    try:
        return _set(db, user_id, changes)
    except DuplicateKeyError:
        raise ConflictError("Email already registered")


def remove(db: Database, user_id: str) -> None:
    res = db["user"].delete_one({"_id": oid(user_id)})
    if res.deleted_count == 0:
        raise NotFoundError("User not found")
    carts.delete_cart(db, user_id)
    logger.info("Account %s deleted", user_id)


def set_active(db: Database, user_id: str, is_active: bool) -> dict:
    user = _set(db, user_id, {"is_active": is_active})
    logger.info("Account %s %s", user_id, "activated" if is_active else "deactivated")
    return user


def set_role(db: Database, user_id: str, role: str) -> dict:
    user = _set(db, user_id, {"role": role})
    logger.info("Account %s role set to %s", user_id, role)
    return user
