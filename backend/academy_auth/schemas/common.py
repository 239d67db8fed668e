from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorOut(BaseModel):
    """Error half of the envelope; ``code`` is an ``AuthErrorKind`` value or CONFLICT/HTTP_ERROR/INTERNAL_ERROR."""

    code: str
    message: str
    # Only request validation failures fill this, as {"errors": [...]}.
    details: Optional[Dict[str, Any]] = None


class Envelope(BaseModel):
    request_id: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[ErrorOut] = None
