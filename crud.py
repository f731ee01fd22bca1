from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload

import models


# --- USERS ---
def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def upsert_user(db: Session, user_id: str, claims: Dict[str, Any]) -> models.User:
    """
    Create the local user record for an identity-provider subject, or refresh
    the profile fields the provider sent.
    """
    profile = {
        field: claims[field]
        for field in ("email", "first_name", "last_name", "profile_image_url")
        if claims.get(field) is not None
    }
    # email is unique locally; a subject reusing another account's address keeps no email
    if "email" in profile and (
        db.query(models.User.id)
        .filter(models.User.email == profile["email"], models.User.id != user_id)
        .first()
    ):
        del profile["email"]
    user = get_user(db, user_id)
    if user is None:
        user = models.User(id=user_id, **profile)
        db.add(user)
    elif any(getattr(user, field) != value for field, value in profile.items()):
        for field, value in profile.items():
            setattr(user, field, value)
    else:
        return user
    db.commit()
    db.refresh(user)
    return user


def update_user_carbon_saved(db: Session, user_id: str, carbon_saved: Decimal) -> None:
    # increment in SQL so concurrent checkouts don't lose updates
    db.execute(
        update(models.User)
        .where(models.User.id == user_id)
        .values(
            total_carbon_saved=models.User.total_carbon_saved + carbon_saved
        )
    )
    db.commit()


# --- PRODUCTS ---
def _with_seller_and_reviews(query):
    return query.options(
        selectinload(models.Product.seller),
        selectinload(models.Product.reviews),
    )


def get_products(
    db: Session,
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> List[models.Product]:
    query = _with_seller_and_reviews(db.query(models.Product)).filter(models.Product.available.is_(True))
    if category:
        query = query.filter(models.Product.category == category)
    if search:
        query = query.filter(models.Product.title.ilike(f"%{search}%"))
    if featured:
        query = query.filter(models.Product.featured.is_(True))
    return (
        query.order_by(models.Product.created_at.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def get_product(db: Session, product_id: str) -> Optional[models.Product]:
    return (
        _with_seller_and_reviews(db.query(models.Product))
        .filter(models.Product.id == product_id)
        .first()
    )


def get_products_by_user(db: Session, user_id: str) -> List[models.Product]:
    return (
        db.query(models.Product)
        .filter(models.Product.seller_id == user_id)
        .order_by(models.Product.created_at.desc())
        .all()
    )


def create_product(db: Session, seller_id: str, data: Dict[str, Any]) -> models.Product:
    db_product = models.Product(seller_id=seller_id, available=True, views=0, **data)
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return db_product


def update_product(db: Session, product: models.Product, updates: Dict[str, Any]) -> models.Product:
    for field, value in updates.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product: models.Product) -> None:
    db.delete(product)
    db.commit()


def increment_product_views(db: Session, product_id: str) -> None:
    db.execute(
        update(models.Product)
        .where(models.Product.id == product_id)
        .values(views=models.Product.views + 1)
    )
    db.commit()


def mark_products_sold(db: Session, product_ids: Iterable[str]) -> None:
    """Retire purchased listings; the caller commits."""
    db.execute(
        update(models.Product)
        .where(models.Product.id.in_(list(product_ids)))
        .values(available=False)
        .execution_options(synchronize_session="fetch")
    )


# --- REVIEWS ---
def get_product_reviews(db: Session, product_id: str) -> List[models.Review]:
    return (
        db.query(models.Review)
        .filter(models.Review.product_id == product_id)
        .order_by(models.Review.created_at.desc())
        .all()
    )


def create_review(db: Session, product_id: str, buyer_id: str, data: Dict[str, Any]) -> models.Review:
    review = models.Review(product_id=product_id, buyer_id=buyer_id, **data)
    db.add(review)
    db.commit()
    db.refresh(review)
    return review


# --- CART ---
def get_cart_items(db: Session, user_id: str) -> List[models.CartItem]:
    return (
        db.query(models.CartItem)
        .join(models.Product, models.CartItem.product_id == models.Product.id)
        .options(
            selectinload(models.CartItem.product).selectinload(models.Product.seller),
            selectinload(models.CartItem.product).selectinload(models.Product.reviews),
        )
        .filter(models.CartItem.user_id == user_id, models.Product.available.is_(True))
        .order_by(models.CartItem.created_at)
        .all()
    )


def get_cart_item(db: Session, user_id: str, cart_item_id: str) -> Optional[models.CartItem]:
    return (
        db.query(models.CartItem)
        .filter(models.CartItem.id == cart_item_id, models.CartItem.user_id == user_id)
        .first()
    )


def add_to_cart(db: Session, user_id: str, product_id: str, quantity: int = 1) -> models.CartItem:
    # one row per add; duplicates are not merged
    cart_item = models.CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
    db.add(cart_item)
    db.commit()
    db.refresh(cart_item)
    return cart_item


def update_cart_item(db: Session, cart_item: models.CartItem, quantity: int) -> models.CartItem:
    if quantity < 1:
        raise ValueError("Cart quantity must be at least 1")
    cart_item.quantity = quantity
    db.commit()
    db.refresh(cart_item)
    return cart_item


def remove_from_cart(db: Session, cart_item_id: str) -> None:
    # deleting a row that is already gone is a no-op
    db.query(models.CartItem).filter(models.CartItem.id == cart_item_id).delete(synchronize_session=False)
    db.commit()


def clear_cart(db: Session, user_id: str) -> None:
    db.query(models.CartItem).filter(models.CartItem.user_id == user_id).delete(synchronize_session=False)
    db.commit()


# --- ORDERS ---
def _with_items(query):
    return query.options(
        selectinload(models.Order.items).selectinload(models.OrderItem.product),
        selectinload(models.Order.items).selectinload(models.OrderItem.seller),
    )


def get_orders(db: Session, buyer_id: str) -> List[models.Order]:
    return (
        _with_items(db.query(models.Order))
        .filter(models.Order.buyer_id == buyer_id)
        .order_by(models.Order.created_at.desc())
        .all()
    )


def get_order(db: Session, order_id: str) -> Optional[models.Order]:
    return _with_items(db.query(models.Order)).filter(models.Order.id == order_id).first()


def create_order(
    db: Session,
    buyer_id: str,
    total_amount: Decimal,
    total_carbon_saved: Decimal,
    shipping_address: Dict[str, Any],
    payment_intent_id: Optional[str],
    status: str = models.OrderStatus.PENDING.value,
) -> models.Order:
    """Stage an order row and assign its id; the caller commits."""
    order = models.Order(
        buyer_id=buyer_id,
        total_amount=total_amount,
        total_carbon_saved=total_carbon_saved,
        shipping_address=shipping_address,
        payment_intent_id=payment_intent_id,
        status=status,
    )
    db.add(order)
    db.flush()
    return order


def create_order_items(db: Session, order_id: str, items: List[Dict[str, Any]]) -> List[models.OrderItem]:
    """Stage the order's line snapshots; the caller commits."""
    order_items = [models.OrderItem(order_id=order_id, **item) for item in items]
    db.add_all(order_items)
    db.flush()
    return order_items


def update_order_status(db: Session, order: models.Order, status: str) -> models.Order:
    order.status = status
    db.commit()
    db.refresh(order)
    return order
