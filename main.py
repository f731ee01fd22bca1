import os
from typing import List
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import crud
import models
import schemas
from auth import AuthServiceClient
from checkout import place_order
from database import Base, engine, get_db
from impact import compute_impact
from payments import PaymentServiceClient

from pythonjsonlogger import jsonlogger
import logging
import sys

app = FastAPI(title="Marketplace API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("ALLOWED_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
Base.metadata.create_all(bind=engine)
auth_service = AuthServiceClient()
payment_service = PaymentServiceClient()

# JSON logging setup
logHandler = logging.StreamHandler(sys.stdout)
formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
logHandler.setFormatter(formatter)

root_logger = logging.getLogger()
root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))
root_logger.addHandler(logHandler)

logger = logging.getLogger(__name__)


# --- ERROR HANDLING ---
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request data", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def get_owned_product(product_id: str, user_id: str, db: Session) -> models.Product:
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if product.seller_id != user_id:
        raise HTTPException(status_code=403, detail="Not allowed")
    return product


# --- USER ENDPOINTS ---
@app.get("/api/auth/user", response_model=schemas.UserOut)
def read_current_user(user: models.User = Depends(auth_service.get_current_user)):
    """
    Get the profile of the signed-in user
    """
    return user


# --- PRODUCT ENDPOINTS ---
@app.get("/api/products", response_model=List[schemas.ProductWithSeller])
def get_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """
    List available products, newest first
    """
    return crud.get_products(
        db,
        category=category,
        search=search,
        featured=featured == "true",
        limit=limit,
        offset=offset,
    )


@app.get("/api/products/{product_id}", response_model=schemas.ProductWithSeller)
def get_product(product_id: str, db: Session = Depends(get_db)):
    """
    Get product details; every fetch counts as one view
    """
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    crud.increment_product_views(db, product_id)
    db.refresh(product)
    return product


@app.post("/api/products", response_model=schemas.ProductOut, status_code=201)
def create_product(
    product: schemas.ProductCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth_service.get_current_user),
):
    """
    List a product for sale; the seller is the signed-in user
    """
    db_product = crud.create_product(db, user.id, product.model_dump(mode="json"))
    logger.info("Product listed", extra={"product_id": db_product.id, "seller_id": user.id})
    return db_product


@app.patch("/api/products/{product_id}", response_model=schemas.ProductOut)
def update_product(
    product_id: str,
    updates: schemas.ProductUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(auth_service.get_current_user_id),
):
    """
    Edit one of your own listings
    """
    product = get_owned_product(product_id, user_id, db)
    return crud.update_product(db, product, updates.model_dump(mode="json", exclude_unset=True))


@app.delete("/api/products/{product_id}", status_code=204)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(auth_service.get_current_user_id),
):
    """
    Delete one of your own listings. Sold listings are kept for order history.
    """
    product = get_owned_product(product_id, user_id, db)
    if product.order_items:
        raise HTTPException(
            status_code=409,
            detail="Product has been ordered; mark it unavailable instead",
        )
    crud.delete_product(db, product)
    return Response(status_code=204)


@app.get("/api/my-products", response_model=List[schemas.ProductOut])
def get_my_products(db: Session = Depends(get_db), user_id: str = Depends(auth_service.get_current_user_id)):
    """
    List the signed-in seller's products, including sold ones
    """
    return crud.get_products_by_user(db, user_id)


# --- REVIEW ENDPOINTS ---
@app.get("/api/products/{product_id}/reviews", response_model=List[schemas.ReviewOut])
def get_product_reviews(product_id: str, db: Session = Depends(get_db)):
    return crud.get_product_reviews(db, product_id)


@app.post("/api/products/{product_id}/reviews", response_model=schemas.ReviewOut, status_code=201)
def create_review(
    product_id: str,
    review: schemas.ReviewCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(auth_service.get_current_user),
):
    if not crud.get_product(db, product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    return crud.create_review(db, product_id, user.id, review.model_dump())


# --- CART ENDPOINTS ---
@app.get("/api/cart", response_model=List[schemas.CartItemWithProduct])
def get_cart(user_id: str = Depends(auth_service.get_current_user_id), db: Session = Depends(get_db)):
    """
    Get the signed-in user's cart items that are still available
    """
    return crud.get_cart_items(db, user_id)


@app.post("/api/cart", response_model=schemas.CartItemOut, status_code=201)
def add_to_cart(
    item: schemas.CartItemCreate,
    user: models.User = Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
):
    """
    Add a product to the cart
    """
    product = crud.get_product(db, item.product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if not product.available:
        raise HTTPException(status_code=400, detail="Product is no longer available")

    return crud.add_to_cart(db, user.id, item.product_id, item.quantity)


@app.put("/api/cart/{cart_item_id}", response_model=schemas.CartItemOut)
def update_cart_item(
    cart_item_id: str,
    update: schemas.CartItemUpdate,
    user_id: str = Depends(auth_service.get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Overwrite the quantity of a cart item
    """
    cart_item = crud.get_cart_item(db, user_id, cart_item_id)
    if not cart_item:
        raise HTTPException(status_code=404, detail="Cart item not found")

    return crud.update_cart_item(db, cart_item, update.quantity)


@app.delete("/api/cart/{cart_item_id}", status_code=204)
def remove_cart_item(
    cart_item_id: str,
    user_id: str = Depends(auth_service.get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Remove an item from the cart
    """
    if not crud.get_cart_item(db, user_id, cart_item_id):
        raise HTTPException(status_code=404, detail="Cart item not found")

    crud.remove_from_cart(db, cart_item_id)
    return Response(status_code=204)


@app.delete("/api/cart", status_code=204)
def clear_cart(
    user_id: str = Depends(auth_service.get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Clear the cart (remove all items)
    """
    crud.clear_cart(db, user_id)
    return Response(status_code=204)


# --- ORDER ENDPOINTS ---
@app.get("/api/orders", response_model=List[schemas.OrderOut])
def get_orders(user_id: str = Depends(auth_service.get_current_user_id), db: Session = Depends(get_db)):
    """
    Get all orders of the signed-in buyer, newest first
    """
    return crud.get_orders(db, user_id)


@app.get("/api/orders/{order_id}", response_model=schemas.OrderOut)
def get_order(
    order_id: str,
    user_id: str = Depends(auth_service.get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Get details of a specific order
    """
    order = crud.get_order(db, order_id)
    if not order or order.buyer_id != user_id:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@app.patch("/api/orders/{order_id}/status", response_model=schemas.OrderOut)
def update_order_status(
    order_id: str,
    update: schemas.OrderStatusUpdate,
    user_id: str = Depends(auth_service.get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Set an order's status. The buyer and the sellers on the order may do this;
    any status value is accepted from any other.
    """
    order = crud.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if user_id != order.buyer_id and user_id not in {item.seller_id for item in order.items}:
        raise HTTPException(status_code=403, detail="Not allowed")

    logger.info(
        "Order status changed",
        extra={"order_id": order.id, "from_status": order.status, "to_status": update.status.value},
    )
    return crud.update_order_status(db, order, update.status.value)


# --- CHECKOUT ENDPOINTS ---
@app.post("/api/create-payment-intent", response_model=schemas.PaymentIntentOut)
def create_payment_intent(
    payment: schemas.PaymentIntentCreate,
    user_id: str = Depends(auth_service.get_current_user_id),
):
    """
    Open a payment intent with the payment processor and relay its client secret
    """
    client_secret = payment_service.create_payment_intent(payment.amount, user_id, payment.cart_item_ids)
    return {"client_secret": client_secret}


@app.post("/api/create-order", response_model=schemas.OrderCreated, status_code=201)
def create_order(
    order_data: schemas.OrderCreate,
    user: models.User = Depends(auth_service.get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create an order from the selected cart items
    """
    order = place_order(
        db,
        buyer_id=user.id,
        cart_item_ids=order_data.cart_item_ids,
        shipping_address=order_data.shipping_address.model_dump(by_alias=True, exclude_none=True),
        payment_intent_id=order_data.payment_intent_id,
    )
    return {"order_id": order.id}


# --- IMPACT ENDPOINTS ---
@app.get("/api/impact", response_model=schemas.ImpactOut)
def get_impact(user: models.User = Depends(auth_service.get_current_user), db: Session = Depends(get_db)):
    """
    Environmental impact of the signed-in buyer's orders
    """
    return compute_impact(crud.get_orders(db, user.id), member_since=user.created_at)
