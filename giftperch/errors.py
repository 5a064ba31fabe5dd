"""Error kinds raised by route handlers and their collaborators.

Each kind maps to exactly one HTTP status in ``giftperch.api.main``:

  ValidationError      → 400, caller-facing message
  AuthenticationError  → 401, always ``{"error": "Unauthorized"}``
  ForbiddenError       → 403, always ``{"error": "Forbidden"}``
  DownstreamError      → 500, detail logged, only the public message returned
"""
from __future__ import annotations

from typing import Any, Optional


class GiftPerchError(Exception):
    """Base class for errors this service raises on purpose."""

    status_code = 500
    public_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", payload: Optional[dict[str, Any]] = None):
        super().__init__(message or self.public_message)
        self.payload = payload or {}

    def to_body(self) -> dict[str, Any]:
        return {"error": self.public_message, **self.payload}


class ValidationError(GiftPerchError):
    """Missing or malformed input. The message is safe to show the caller."""

    status_code = 400

    def __init__(self, message: str, payload: Optional[dict[str, Any]] = None):
        super().__init__(message, payload)
        self.public_message = message


class AuthenticationError(GiftPerchError):
    status_code = 401
    public_message = "Unauthorized"


class ForbiddenError(GiftPerchError):
    status_code = 403
    public_message = "Forbidden"


class DownstreamError(GiftPerchError):
    """An identity, storage or search-provider call failed.

    ``str(exc)`` carries the full upstream detail for the logs;
    ``public_message`` is all the caller ever sees.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        public_message: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, payload)
        self.public_message = public_message or message


class MissingContextError(RuntimeError):
    """A route ran before the service container was wired onto the app."""
