"""
Stripe adapter.

Dollars in, cents out: every amount is converted with to_cents().
Every Stripe failure leaves here as ProcessorError.
"""

import logging
import os
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

import stripe

from .errors import InvalidStateError, ProcessorError


logger = logging.getLogger(__name__)

CURRENCY = "usd"


def to_cents(amount: float) -> int:
    """round(amount * 100), halves rounded up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    return cents / 100


class StripeProcessor:
    """Thin wrapper over the Stripe calls the payment flows need."""

    def __init__(self, api_key: Optional[str] = None):
        stripe.api_key = api_key or os.environ.get("STRIPE_SECRET_KEY")

    def create_customer(
        self,
        email: str,
        user_id: int,
        name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> str:
        try:
            customer = stripe.Customer.create(
                email=email,
                name=name or None,
                phone=phone or None,
                metadata={"userId": str(user_id)},
            )
        except stripe.StripeError as e:
            raise ProcessorError(e.user_message or str(e)) from e

        return customer.id

    def get_default_payment_method(self, customer_id: str) -> Optional[str]:
        """
        The customer's default card, or None.
        The setting may come back as an id or an expanded object.
        """
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except stripe.StripeError as e:
            raise ProcessorError(e.user_message or str(e)) from e

        if getattr(customer, "deleted", False):
            raise InvalidStateError("Customer has been deleted in Stripe")

        settings = getattr(customer, "invoice_settings", None)
        method = getattr(settings, "default_payment_method", None) if settings else None

        if method is None or isinstance(method, str):
            return method
        return method.id

    def list_card_payment_methods(self, customer_id: str) -> List[str]:
        """Card ids for the customer, oldest first."""
        try:
            methods = stripe.Customer.list_payment_methods(customer_id, type="card", limit=100)
        except stripe.StripeError as e:
            raise ProcessorError(e.user_message or str(e)) from e

        return [m.id for m in sorted(methods.data, key=lambda m: m.created)]

    def create_payment_intent(
        self,
        amount: float,
        customer_id: str,
        payment_method_id: str,
        description: str,
        metadata: dict,
        capture_method: str = "automatic",
        idempotency_key: Optional[str] = None,
    ):
        """
        Create and confirm in one call.
        Automatic capture charges now; manual capture places a hold.
        """
        params = {
            "amount": to_cents(amount),
            "currency": CURRENCY,
            "customer": customer_id,
            "payment_method": payment_method_id,
            "confirm": True,
            "capture_method": capture_method,
            "description": description,
            "metadata": {k: str(v) for k, v in metadata.items()},
        }

        if capture_method == "manual":
            params["off_session"] = True
        else:
            params["automatic_payment_methods"] = {
                "enabled": True,
                "allow_redirects": "never",
            }

        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.StripeError as e:
            raise ProcessorError(e.user_message or str(e)) from e

        logger.info(f"PaymentIntent {intent.id} for {description}: {intent.status}")
        return intent

    def capture_payment_intent(self, intent_id: str):
        try:
            return stripe.PaymentIntent.capture(intent_id)
        except stripe.StripeError as e:
            raise ProcessorError(e.user_message or str(e)) from e

    def cancel_payment_intent(self, intent_id: str):
        try:
            return stripe.PaymentIntent.cancel(intent_id)
        except stripe.StripeError as e:
            raise ProcessorError(e.user_message or str(e)) from e

    def create_refund(
        self,
        intent_id: str,
        amount_cents: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        """Full refund unless amount_cents is given."""
        params = {"payment_intent": intent_id}
        if amount_cents is not None:
            params["amount"] = amount_cents
        if reason:
            params["reason"] = reason

        try:
            return stripe.Refund.create(**params)
        except stripe.StripeError as e:
            raise ProcessorError(e.user_message or str(e)) from e
