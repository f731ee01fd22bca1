import enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


def generate_id():
    return str(uuid.uuid4())


class UserType(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"
    BOTH = "both"


class Category(str, enum.Enum):
    CLOTHING = "clothing"
    ELECTRONICS = "electronics"
    HOME_GARDEN = "home-garden"
    BOOKS = "books"
    SPORTS = "sports"
    TOYS = "toys"
    FURNITURE = "furniture"
    JEWELRY = "jewelry"
    VEHICLES = "vehicles"
    OTHER = "other"


class Condition(str, enum.Enum):
    EXCELLENT = "excellent"
    VERY_GOOD = "very-good"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class EcoScore(str, enum.Enum):
    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class User(Base):
    __tablename__ = "users"
    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=True)
    first_name = Column(String(255))
    last_name = Column(String(255))
    profile_image_url = Column(String(512))
    user_type = Column(String(16), default=UserType.BUYER.value, nullable=False)
    total_carbon_saved = Column(Numeric(10, 2), default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    products = relationship("Product", back_populates="seller")
    reviews = relationship("Review", back_populates="buyer")
    cart_items = relationship("CartItem", back_populates="user")
    orders = relationship("Order", back_populates="buyer")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price > 0", name="ck_products_price_positive"),
        CheckConstraint("condition_rating BETWEEN 1 AND 10", name="ck_products_condition_rating"),
    )
    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    seller_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    original_price = Column(Numeric(10, 2))
    category = Column(String(32), nullable=False, index=True)
    condition = Column(String(16), nullable=False)
    condition_rating = Column(Integer, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    carbon_saved = Column(Numeric(8, 2), nullable=False)
    water_saved = Column(Numeric(10, 2))
    eco_score = Column(String(2), nullable=False)
    sustainability_certified = Column(Boolean, default=False, nullable=False)
    available = Column(Boolean, default=True, nullable=False)
    featured = Column(Boolean, default=False, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    seller = relationship("User", back_populates="products")
    reviews = relationship(
        "Review",
        back_populates="product",
        order_by="Review.created_at.desc()",
        cascade="all, delete-orphan",
    )
    cart_items = relationship("CartItem", back_populates="product", cascade="all, delete-orphan")
    order_items = relationship("OrderItem", back_populates="product")


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )
    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    buyer_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    product = relationship("Product", back_populates="reviews")
    buyer = relationship("User", back_populates="reviews")


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
    )
    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    user = relationship("User", back_populates="cart_items")
    product = relationship("Product", back_populates="cart_items")


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    buyer_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(16), default=OrderStatus.PENDING.value, nullable=False)
    shipping_address = Column(JSON, nullable=False)
    payment_intent_id = Column(String(255))
    total_carbon_saved = Column(Numeric(10, 2))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    buyer = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order")


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(String(36), primary_key=True, index=True, default=generate_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    seller_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    # price and carbon_saved are copied from the product at checkout and never updated
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    carbon_saved = Column(Numeric(8, 2))
    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")
    seller = relationship("User")
