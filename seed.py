"""
Demo catalog and admin account for local development.
"""
import logging

from pymongo.database import Database

from auth import hash_password
from config import ADMIN_EMAIL, ADMIN_PASSWORD
from database import create_document
from schemas import Product, User

logger = logging.getLogger(__name__)


def _spec(case_material, case_size, dial_color, movement, water_resistance, strap_material, strap_color,
          crystal="Sapphire Crystal", power_reserve=None, features=None):
    return {
        "case_material": case_material,
        "case_size": case_size,
        "dial_color": dial_color,
        "movement": movement,
        "water_resistance": water_resistance,
        "strap_material": strap_material,
        "strap_color": strap_color,
        "crystal": crystal,
        "power_reserve": power_reserve,
        "features": features or [],
    }


DEMO_PRODUCTS = [
    {
        "name": "Royal Oak",
        "brand": "Audemars Piguet",
        "price": 45000,
        "original_price": 48000,
        "description": "The octagonal bezel and integrated bracelet that defined the luxury sports watch.",
        "short_description": "Iconic luxury sports watch",
        "images": ["https://images.unsplash.com/photo-1523170335258-f5ed11844a49"],
        "category": "luxury",
        "specifications": _spec("Stainless Steel", "41mm", "Blue", "Automatic", "50m", "Stainless Steel",
                                "Silver", power_reserve="70 hours", features=["Date Display", "Tapisserie Dial"]),
        "stock": 3,
        "is_new": True,
        "is_featured": True,
    },
    {
        "name": "Nautilus 5711",
        "brand": "Patek Philippe",
        "price": 85000,
        "description": "A porthole-inspired case with a horizontally embossed dial.",
        "short_description": "The steel sports icon",
        "images": ["https://images.unsplash.com/photo-1587836374828-4dbafa94cf0e"],
        "category": "luxury",
        "specifications": _spec("Stainless Steel", "40mm", "Olive Green", "Automatic", "120m", "Stainless Steel",
                                "Silver", power_reserve="45 hours", features=["Date Display"]),
        "stock": 2,
        "is_new": True,
        "is_featured": True,
    },
    {
        "name": "Calatrava 5227",
        "brand": "Patek Philippe",
        "price": 38000,
        "description": "Understated dress watch with an officer's style hinged caseback.",
        "images": ["https://images.unsplash.com/photo-1612817159949-195b6eb9e31a"],
        "category": "classic",
        "specifications": _spec("Yellow Gold", "39mm", "Ivory", "Automatic", "30m", "Alligator Leather",
                                "Brown", power_reserve="48 hours"),
        "stock": 4,
        "is_featured": True,
    },
    {
        "name": "Submariner Date",
        "brand": "Rolex",
        "price": 14500,
        "description": "The reference diver's watch, with a unidirectional Cerachrom bezel.",
        "images": ["https://images.unsplash.com/photo-1547996160-81dfa63595aa"],
        "category": "diving",
        "specifications": _spec("Oystersteel", "41mm", "Black", "Automatic", "300m", "Oystersteel",
                                "Silver", power_reserve="70 hours", features=["Date Display", "Luminous Hands"]),
        "stock": 8,
        "is_new": True,
        "is_featured": True,
    },
    {
        "name": "Seamaster 300",
        "brand": "Omega",
        "price": 7200,
        "description": "Vintage-inspired diver with a Master Chronometer movement.",
        "images": ["https://images.unsplash.com/photo-1548171915-e79a380a2a4b"],
        "category": "diving",
        "specifications": _spec("Stainless Steel", "41mm", "Black", "Automatic", "300m", "Rubber", "Black",
                                power_reserve="60 hours", features=["Luminous Hands"]),
        "stock": 10,
    },
    {
        "name": "Speedmaster Moonwatch",
        "brand": "Omega",
        "price": 6800,
        "description": "Manual-wound chronograph flight-qualified for space missions.",
        "images": ["https://images.unsplash.com/photo-1622434641406-a158123450f9"],
        "category": "chronograph",
        "specifications": _spec("Stainless Steel", "42mm", "Black", "Manual", "50m", "Stainless Steel",
                                "Silver", crystal="Hesalite", power_reserve="50 hours",
                                features=["Chronograph", "Tachymeter"]),
        "stock": 12,
        "is_new": True,
    },
    {
        "name": "Carrera Chronograph",
        "brand": "TAG Heuer",
        "price": 5900,
        "description": "Racing-inspired chronograph with an in-house Heuer 02 movement.",
        "images": ["https://images.unsplash.com/photo-1619134778706-7015533a6150"],
        "category": "sport",
        "specifications": _spec("Stainless Steel", "44mm", "Blue", "Automatic", "100m", "Leather", "Blue",
                                power_reserve="80 hours", features=["Chronograph"]),
        "stock": 15,
    },
    {
        "name": "Big Bang Unico",
        "brand": "Hublot",
        "price": 24000,
        "description": "Skeletonised chronograph in a ceramic case, produced in a numbered series.",
        "images": ["https://images.unsplash.com/photo-1639037687665-a4ca6a7d1bb0"],
        "category": "limited-edition",
        "specifications": _spec("Ceramic", "42mm", "Skeleton", "Automatic", "100m", "Rubber", "Black",
                                power_reserve="72 hours", features=["Chronograph", "Skeleton Dial"]),
        "stock": 1,
        "is_featured": True,
    },
]


def seed(db: Database) -> dict:
    """Insert the demo catalog and an admin account if the catalog is empty."""
    if db["product"].count_documents({}) > 0:
        return {"seeded": False, "message": "Products already exist"}
    for p in DEMO_PRODUCTS:
        create_document(db, "product", Product(**p))
    if db["user"].count_documents({"role": "admin"}) == 0:
        email = ADMIN_EMAIL.strip().lower()
        admin = User(
            email=email,
            password_hash=hash_password(ADMIN_PASSWORD),
            first_name="Admin",
            last_name="User",
            role="admin",
        )
        create_document(db, "user", admin)
        logger.info("Admin account %s created", email)
    count = db["product"].count_documents({})
    logger.info("Seeded %d products", count)
    return {"seeded": True, "products": count}
