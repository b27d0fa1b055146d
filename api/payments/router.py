"""
Payment API endpoints.

Both routes read the provider's request shape; `/webhook` needs the raw,
unparsed body for signature verification.
"""

from __future__ import annotations

from fastapi import APIRouter, Header, Request

from . import schemas, service

router = APIRouter()


@router.post("/create-payment-intent")
async def create_payment_intent(request: schemas.PaymentIntentRequest) -> schemas.PaymentIntentResponse:
    return await service.create_payment_intent(request)


@router.post("/webhook")
async def webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
) -> dict:
    payload = await request.body()
    return service.handle_webhook(payload, stripe_signature)
