"""
Credential hashing, bearer tokens and the per-request role check.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pymongo.database import Database

from config import JWT_ALGORITHM, JWT_EXPIRY_MINUTES, JWT_SECRET
from database import get_db, oid, serialize_doc
from errors import BadRequestError, ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
security = HTTPBearer(auto_error=False)

ROLE_RANK = {"user": 0, "admin": 1}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_token(user: dict) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=JWT_EXPIRY_MINUTES)
    payload = {
        "sub": str(user["_id"]),
        "email": user["email"],
        "role": user.get("role", "user"),
        "exp": exp,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")


def authorize(role: Optional[str], required_role: str) -> bool:
    """Return True when `role` is at least `required_role`."""
    if role not in ROLE_RANK or required_role not in ROLE_RANK:
        return False
    return ROLE_RANK[role] >= ROLE_RANK[required_role]


def ensure_role(user: dict, required_role: str) -> None:
    if not authorize(user.get("role"), required_role):
        logger.warning("Account %s denied: %s role required", user.get("id"), required_role)
        raise ForbiddenError("Admin only" if required_role == "admin" else "Forbidden")


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                     db: Database = Depends(get_db)) -> dict:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Not authenticated")
    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")
    try:
        key = oid(user_id)
    except BadRequestError:
        raise UnauthorizedError("Invalid token payload")
    user = db["user"].find_one({"_id": key})
    if not user:
        raise UnauthorizedError("User not found")
    if not user.get("is_active", True):
        raise ForbiddenError("Your account has been deactivated")
    user = serialize_doc(user)
    user.pop("password_hash", None)
    return user
