"""
Error taxonomy shared by every route.

Each error carries the HTTP status it maps to and a fixed caller-facing body.
The underlying diagnostic (`detail`) is kept on the exception for logging and
is never sent to the caller.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator


class ParcelsError(RuntimeError):
    status_code: int = 500
    error: str = "Internal server error"
    message: str | None = None

    def __init__(self, detail: str = "", *, error: str | None = None, **fields: Any) -> None:
        super().__init__(detail or self.error)
        self.detail = detail or self.error
        if error is not None:
            self.error = error
        self.fields = fields

    def body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        body.update(self.fields)
        return body


class ConfigurationError(ParcelsError):
    status_code = 503
    error = "Database not connected"


class ValidationError(ParcelsError):
    status_code = 400
    error = "Invalid parcel ID format"


class NotFoundError(ParcelsError):
    status_code = 404
    error = "Parcel not found"


class ConnectivityError(ParcelsError):
    status_code = 500
    error = "Database unavailable"
    message = "The database could not be reached."


class UpstreamError(ParcelsError):
    status_code = 500
    error = "Upstream request failed"
    message = "The request could not be completed."


class SignatureError(ParcelsError):
    status_code = 400
    error = "Webhook signature verification failed"


@contextmanager
def failure_label(label: str) -> Iterator[None]:
    """
    Relabel store/provider failures with the operation that was attempted,
    e.g. "Failed to fetch parcels".
    """
    try:
        yield
    except (ConnectivityError, UpstreamError) as exc:
        exc.error = label
        raise
