"""
Pydantic schemas for payment endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PaymentIntentRequest(BaseModel):
    # Smallest currency unit (cents). Takes precedence over `price`.
    amount: int | None = Field(default=None, gt=0)
    # Major currency unit, converted to cents.
    price: float | None = Field(default=None, gt=0)
    currency: str = Field(default="usd", min_length=3, max_length=3)
    metadata: dict[str, str] | None = None


class PaymentIntentResponse(BaseModel):
    clientSecret: str
    paymentIntentId: str | None = None
