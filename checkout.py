"""
Order placement: turn a selection of the buyer's cart rows into an order.

The order, the buyer's carbon counter and the cart are written in three
separate commits (order + items, counter, one delete per cart row). A failure
part-way leaves an order whose cart rows were not cleared; every step is
logged with the order id so that state can be found and repaired.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

import crud
import models

logger = logging.getLogger(__name__)


class EmptySelectionError(HTTPException):
    def __init__(self):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid cart items found")


def summarize_cart_items(cart_items: List[models.CartItem]):
    """
    Snapshot each cart row into order-item data and total the selection.

    Returns (total_amount, total_carbon_saved, order_items).
    """
    total_amount = Decimal("0")
    total_carbon_saved = Decimal("0")
    order_items = []
    for item in cart_items:
        product = item.product
        price = Decimal(product.price)
        carbon_saved = Decimal(product.carbon_saved)
        total_amount += price * item.quantity
        total_carbon_saved += carbon_saved * item.quantity
        order_items.append({
            "product_id": product.id,
            "seller_id": product.seller_id,
            "price": price,
            "quantity": item.quantity,
            "carbon_saved": carbon_saved,
        })
    return total_amount, total_carbon_saved, order_items


def place_order(
    db: Session,
    buyer_id: str,
    cart_item_ids: List[str],
    shipping_address: Dict[str, Any],
    payment_intent_id: Optional[str] = None,
) -> models.Order:
    # Only the ids come from the client; prices and quantities come from storage
    requested = set(cart_item_ids)
    selected = [item for item in crud.get_cart_items(db, buyer_id) if item.id in requested]
    if not selected:
        raise EmptySelectionError()
    consumed_ids = [item.id for item in selected]

    total_amount, total_carbon_saved, order_items = summarize_cart_items(selected)

    order = crud.create_order(
        db,
        buyer_id=buyer_id,
        total_amount=total_amount,
        total_carbon_saved=total_carbon_saved,
        shipping_address=shipping_address,
        payment_intent_id=payment_intent_id,
        status=models.OrderStatus.CONFIRMED.value,
    )
    crud.create_order_items(db, order.id, order_items)
    crud.mark_products_sold(db, {item["product_id"] for item in order_items})
    db.commit()
    log_fields = {"order_id": order.id, "buyer_id": buyer_id}
    logger.info(
        "Order created",
        extra={**log_fields, "total_amount": str(total_amount), "items": len(order_items)},
    )

    crud.update_user_carbon_saved(db, buyer_id, total_carbon_saved)
    logger.info("Buyer carbon counter updated", extra={**log_fields, "carbon_saved": str(total_carbon_saved)})

    for cart_item_id in consumed_ids:
        crud.remove_from_cart(db, cart_item_id)
    logger.info("Cart items consumed", extra={**log_fields, "cart_item_ids": consumed_ids})

    db.refresh(order)
    return order
