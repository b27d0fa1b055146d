"""
Payment business logic: a thin pass-through to Stripe.
"""

from __future__ import annotations

import logging
from typing import Any

from core import config
from core.errors import ConfigurationError, ValidationError, failure_label

from . import provider, schemas, webhooks

logger = logging.getLogger(__name__)

PAYMENTS_NOT_CONFIGURED = "Payments not configured"


def amount_in_minor_units(request: schemas.PaymentIntentRequest) -> int:
    if request.amount is not None:
        return request.amount
    if request.price is not None:
        return int(round(request.price * 100))
    raise ValidationError("Payment intent without amount or price", error="amount or price is required")


async def create_payment_intent(request: schemas.PaymentIntentRequest) -> schemas.PaymentIntentResponse:
    settings = config.load_payment_settings()
    if not settings.secret_key:
        raise ConfigurationError("STRIPE_SECRET_KEY is not set", error=PAYMENTS_NOT_CONFIGURED)

    amount = amount_in_minor_units(request)
    with failure_label("Failed to create payment intent"):
        intent = await provider.create_payment_intent(
            api_base=settings.api_base,
            secret_key=settings.secret_key,
            amount=amount,
            currency=request.currency,
            metadata=request.metadata,
        )
    logger.info("payment_intent_created id=%s amount=%s currency=%s", intent.get("id"), amount, request.currency)
    return schemas.PaymentIntentResponse(
        clientSecret=intent["client_secret"],
        paymentIntentId=intent.get("id"),
    )


def handle_webhook(payload: bytes, signature_header: str | None) -> dict[str, Any]:
    settings = config.load_payment_settings()
    if not settings.webhook_secret:
        raise ConfigurationError("STRIPE_WEBHOOK_SECRET is not set", error=PAYMENTS_NOT_CONFIGURED)

    event = webhooks.construct_event(payload, signature_header, settings.webhook_secret)
    logger.info("webhook_received id=%s type=%s", event.get("id"), event.get("type"))
    return {"received": True}
