from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models import Category, Condition, EcoScore, OrderStatus, UserType


class CamelModel(BaseModel):
    """Base for every payload: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- User ---
class UserOut(CamelModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    user_type: UserType = UserType.BUYER
    total_carbon_saved: float = 0
    created_at: Optional[datetime] = None


# --- Review ---
class ReviewCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class ReviewOut(ReviewCreate):
    id: str
    product_id: str
    buyer_id: str
    created_at: Optional[datetime] = None


# --- Product ---
class ProductBase(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str
    price: float = Field(..., gt=0)
    original_price: Optional[float] = Field(None, gt=0)
    category: Category
    condition: Condition
    condition_rating: int = Field(..., ge=1, le=10)
    images: List[str] = []
    carbon_saved: float = Field(..., ge=0)
    water_saved: Optional[float] = Field(None, ge=0)
    eco_score: EcoScore
    sustainability_certified: bool = False
    featured: bool = False


class ProductCreate(ProductBase):
    pass


class ProductUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    original_price: Optional[float] = Field(None, gt=0)
    category: Optional[Category] = None
    condition: Optional[Condition] = None
    condition_rating: Optional[int] = Field(None, ge=1, le=10)
    images: Optional[List[str]] = None
    carbon_saved: Optional[float] = Field(None, ge=0)
    water_saved: Optional[float] = Field(None, ge=0)
    eco_score: Optional[EcoScore] = None
    sustainability_certified: Optional[bool] = None
    featured: Optional[bool] = None
    available: Optional[bool] = None

    @field_validator(
        "title", "description", "price", "category", "condition", "condition_rating", "images",
        "carbon_saved", "eco_score", "sustainability_certified", "featured", "available",
        mode="before",
    )
    @classmethod
    def not_null(cls, value):
        # omit a field to leave it unchanged; null only clears the nullable ones
        if value is None:
            raise ValueError("may not be null")
        return value


class ProductOut(ProductBase):
    id: str
    seller_id: str
    available: bool
    views: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductWithSeller(ProductOut):
    seller: UserOut
    reviews: List[ReviewOut] = []


# --- Cart ---
class CartItemCreate(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class CartItemUpdate(CamelModel):
    quantity: int = Field(..., ge=1)


class CartItemOut(CamelModel):
    id: str
    user_id: str
    product_id: str
    quantity: int
    created_at: Optional[datetime] = None


class CartItemWithProduct(CartItemOut):
    product: ProductWithSeller


# --- Order ---
class ShippingAddress(CamelModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: Optional[str] = None


class OrderCreate(CamelModel):
    cart_item_ids: List[str]
    shipping_address: ShippingAddress
    payment_intent_id: Optional[str] = None


class OrderCreated(CamelModel):
    order_id: str


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class OrderItemOut(CamelModel):
    id: str
    order_id: str
    product_id: str
    seller_id: str
    price: float
    quantity: int
    carbon_saved: Optional[float] = None
    product: ProductOut
    seller: UserOut


class OrderOut(CamelModel):
    id: str
    buyer_id: str
    total_amount: float
    status: OrderStatus
    shipping_address: ShippingAddress
    payment_intent_id: Optional[str] = None
    total_carbon_saved: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemOut] = []


# --- Payments ---
class PaymentIntentCreate(CamelModel):
    amount: Optional[float] = None
    cart_item_ids: List[str] = []


class PaymentIntentOut(CamelModel):
    client_secret: str


# --- Impact ---
class ImpactOut(CamelModel):
    carbon_saved: float
    water_saved: float
    trees_equivalent: float
    energy_saved: float
    total_orders: int
    total_spent: float
    member_since: Optional[int] = None
