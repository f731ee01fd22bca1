import json
import logging
import os
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

import stripe
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class PaymentServiceClient:
    """Client for the external payment processor (Stripe)"""

    def __init__(self):
        self.secret_key = os.getenv("STRIPE_SECRET_KEY")
        self.currency = os.getenv("PAYMENT_CURRENCY", "usd")

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def create_payment_intent(self, amount: Optional[float], user_id: str, cart_item_ids: List[str]) -> str:
        """
        Open a payment intent for `amount` (in major currency units) and return
        the client secret the browser needs to confirm it.

        The amount is taken as given; order placement re-derives the total from
        the stored cart and the two are not compared.
        """
        if not self.configured:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Payment processing is not configured. Please contact support.",
            )

        if not amount or amount <= 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid amount")

        amount_in_cents = int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        try:
            payment_intent = stripe.PaymentIntent.create(
                amount=amount_in_cents,
                currency=self.currency,
                metadata={
                    "userId": user_id,
                    "cartItemIds": json.dumps(cart_item_ids),
                },
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            logger.exception("Payment intent creation failed", extra={"user_id": user_id})
            raise HTTPException(
                status_code=500,
                detail=f"Error creating payment intent: {e.user_message or e}",
            )

        logger.info(
            "Payment intent created",
            extra={"user_id": user_id, "payment_intent_id": payment_intent["id"], "amount": amount_in_cents},
        )
        return payment_intent["client_secret"]
