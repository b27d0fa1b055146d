"""
Stripe HTTP client helpers.

Used endpoints:
- POST /v1/payment_intents  (form-encoded) -> {"id": "pi_...", "client_secret": "..."}
"""

from __future__ import annotations

from typing import Any

import httpx

from core.errors import UpstreamError


def _form(amount: int, currency: str, metadata: dict[str, str] | None) -> dict[str, str]:
    form = {
        "amount": str(int(amount)),
        "currency": currency.lower(),
        "automatic_payment_methods[enabled]": "true",
    }
    for key, value in (metadata or {}).items():
        form[f"metadata[{key}]"] = str(value)
    return form


async def create_payment_intent(
    *,
    api_base: str,
    secret_key: str,
    amount: int,
    currency: str = "usd",
    metadata: dict[str, str] | None = None,
    timeout_s: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """
    Create a payment intent for `amount` in the currency's smallest unit.
    """
    try:
        async with httpx.AsyncClient(base_url=api_base, timeout=timeout_s, transport=transport) as client:
            resp = await client.post(
                "/v1/payment_intents",
                data=_form(amount, currency, metadata),
                headers={"Authorization": f"Bearer {secret_key}"},
            )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Stripe payment intent request failed: {exc}") from exc

    if resp.status_code != 200:
        # Avoid dumping huge bodies; include a small snippet.
        body = resp.text[:500]
        raise UpstreamError(f"Stripe payment intent request failed: {resp.status_code} {body}")

    data: dict[str, Any] = resp.json()
    if not isinstance(data.get("client_secret"), str):
        raise UpstreamError("Stripe returned a payment intent without client_secret.")
    return data
