"""
Stripe webhook signature verification.

Header format: `Stripe-Signature: t=<unix seconds>,v1=<hex>[,v1=<hex>...]`.
The expected v1 signature is HMAC-SHA256 over `"<t>." + raw body`, keyed
with the endpoint's signing secret.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any

from core.errors import SignatureError

DEFAULT_TOLERANCE_S = 300
SIGNATURE_SCHEME = "v1"


def _parse_header(header: str) -> tuple[int, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise SignatureError("Unable to extract timestamp from header.") from None
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)

    if timestamp is None:
        raise SignatureError("Unable to extract timestamp from header.")
    if not signatures:
        raise SignatureError("No signatures found with expected scheme.")
    return timestamp, signatures


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    *,
    tolerance_s: int = DEFAULT_TOLERANCE_S,
    now: float | None = None,
) -> None:
    if not header:
        raise SignatureError("Missing Stripe-Signature header.")

    timestamp, signatures = _parse_header(header)
    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise SignatureError("No signatures found matching the expected signature.")

    current = time.time() if now is None else now
    if tolerance_s and abs(current - timestamp) > tolerance_s:
        raise SignatureError("Timestamp outside the tolerance zone.")


def construct_event(payload: bytes, header: str | None, secret: str, **kwargs: Any) -> dict[str, Any]:
    """
    Verify the signature, then decode the event body.
    """
    verify_signature(payload, header, secret, **kwargs)
    try:
        event = json.loads(payload)
    except ValueError as exc:
        raise SignatureError("Webhook payload is not valid JSON.", error="Invalid webhook payload") from exc
    if not isinstance(event, dict):
        raise SignatureError("Webhook payload is not an object.", error="Invalid webhook payload")
    return event
