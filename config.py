"""
Application configuration, read once from the environment (and `.env`).
"""
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRY_MINUTES = int(os.getenv("JWT_EXPIRY_MINUTES", str(60 * 24 * 7)))

TAX_RATE = float(os.getenv("TAX_RATE", "0.1"))
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", "5000"))
SHIPPING_FEE = float(os.getenv("SHIPPING_FEE", "50"))

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@watchstore.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "8000"))
