"""
Database Schemas for the Watch Store

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

ProductCategory = Literal["luxury", "sport", "classic", "limited-edition", "diving", "chronograph"]
Role = Literal["user", "admin"]
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]


class User(BaseModel):
    email: EmailStr
    password_hash: str = Field(..., description="Hashed password")
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: Role = "user"
    is_active: bool = True


class ProductSpecification(BaseModel):
    case_material: str
    case_size: str
    dial_color: str
    movement: str
    water_resistance: str
    strap_material: str
    strap_color: str
    crystal: str
    power_reserve: Optional[str] = None
    features: List[str] = []


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    description: str
    short_description: Optional[str] = None
    images: List[str] = []
    category: ProductCategory
    specifications: ProductSpecification
    stock: int = Field(0, ge=0)
    is_new: bool = False
    is_featured: bool = False
    is_active: bool = True


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    added_at: Optional[datetime] = None


class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = []


class OrderItem(BaseModel):
    product_id: str
    product_name: str
    product_image: str = ""
    price: float
    quantity: int = Field(..., ge=1)


class ShippingAddress(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)


class Order(BaseModel):
    user_id: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    subtotal: float
    tax: float
    shipping: float
    total: float
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    payment_method: str
    notes: Optional[str] = None
