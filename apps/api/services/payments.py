"""Stripe access for customers, checkout, cancellation and webhook verification."""
import json
import logging
import os
from typing import Any, Dict, Optional

import stripe

from ..errors import NotAuthenticated, UpstreamUnavailable, ValidationError

logger = logging.getLogger(__name__)

PAYMENT_SECRET_KEY = os.getenv("PAYMENT_SECRET_KEY", "")
PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET", "")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
SIGNATURE_TOLERANCE = 300


class PaymentClient:
    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else PAYMENT_SECRET_KEY

    def _call(self, what: str, fn, *args, **params):
        try:
            return fn(*args, api_key=self.api_key, **params)
        except stripe.StripeError as e:
            logger.error("stripe %s failed: %s", what, e)
            raise UpstreamUnavailable("Payment service is unavailable") from e

    def create_customer(self, email: Optional[str], name: Optional[str], user_id: str) -> str:
        params = {"metadata": {"user_id": user_id}}
        if email:
            params["email"] = email
        if name:
            params["name"] = name
        customer = self._call("customer create", stripe.Customer.create, **params)
        return customer.id

    def create_checkout_session(
        self,
        customer_id: str,
        plan_id: int,
        plan_name: str,
        amount: float,
        interval: str,
        user_id: str,
    ) -> Dict[str, Any]:
        metadata = {"user_id": user_id, "plan_id": str(plan_id)}
        session = self._call(
            "checkout",
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="subscription",
            payment_method_types=["card"],
            line_items=[
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": "usd",
                        "unit_amount": int(round(amount * 100)),
                        "recurring": {"interval": interval},
                        "product_data": {"name": plan_name},
                    },
                }
            ],
            success_url=f"{FRONTEND_URL}/subscription/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{FRONTEND_URL}/subscription/cancel",
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
        return {"id": session.id, "url": session.url}

    def cancel_at_period_end(self, subscription_id: str) -> Dict[str, Any]:
        sub = self._call("cancel", stripe.Subscription.modify, subscription_id, cancel_at_period_end=True)
        return {"id": sub.id, "cancel_at_period_end": bool(getattr(sub, "cancel_at_period_end", True))}

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        sub = self._call("subscription retrieve", stripe.Subscription.retrieve, subscription_id)
        return {
            "id": sub.id,
            "status": getattr(sub, "status", None),
            "current_period_start": getattr(sub, "current_period_start", None),
            "current_period_end": getattr(sub, "current_period_end", None),
        }

    def retrieve_customer(self, customer_id: str) -> Dict[str, Any]:
        customer = self._call("customer retrieve", stripe.Customer.retrieve, customer_id)
        return {
            "id": customer.id,
            "email": getattr(customer, "email", None),
            "deleted": bool(getattr(customer, "deleted", False)),
        }


def get_payment_client() -> PaymentClient:
    return PaymentClient()


def construct_event(payload: bytes, header: Optional[str], secret: Optional[str] = None) -> Dict[str, Any]:
    """Verify the Stripe-Signature header and return the event as a plain dict."""
    secret = secret if secret is not None else PAYMENT_WEBHOOK_SECRET
    if not secret or not header:
        raise NotAuthenticated("Invalid webhook signature", code="bad_signature")
    try:
        stripe.Webhook.construct_event(payload, header, secret, tolerance=SIGNATURE_TOLERANCE)
    except stripe.SignatureVerificationError as e:
        logger.warning("webhook signature rejected: %s", e)
        raise NotAuthenticated("Invalid webhook signature", code="bad_signature") from e
    except ValueError as e:
        raise ValidationError("Malformed webhook event") from e
    event = json.loads(payload)
    if not isinstance(event, dict):
        raise ValidationError("Malformed webhook event")
    return event
