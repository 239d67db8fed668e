"""Error taxonomy for the account lifecycle.

Two disjoint families:

``AuthError``
    Expected business failures. Each subclass carries a stable ``kind`` tag, an
    HTTP status and a fixed user-facing message, so callers branch on the kind
    instead of matching message strings.

``InfrastructureError``
    Store, mail, signing and identity-provider failures. These are never turned
    into business answers by the core; the request layer maps them to 5xx (or
    409 for write conflicts).
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class AuthErrorKind(str, Enum):
    validation_failed = "VALIDATION_FAILED"
    already_registered = "ALREADY_REGISTERED"
    already_verified = "ALREADY_VERIFIED"
    invalid_credential = "INVALID_CREDENTIAL"
    no_credential = "NO_CREDENTIAL"
    expired = "EXPIRED"
    invalid_or_expired_token = "INVALID_OR_EXPIRED_TOKEN"
    not_verified = "NOT_VERIFIED"
    unauthorized = "UNAUTHORIZED"
    not_found = "NOT_FOUND"
    identity_conflict = "IDENTITY_CONFLICT"


class AuthError(Exception):
    kind: AuthErrorKind = AuthErrorKind.invalid_credential
    status_code: int = 400
    default_message: str = "Request could not be completed"

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = int(status_code)
        super().__init__(self.message)

    def to_error(self) -> dict:
        return {"code": self.kind.value, "message": self.message}


class AlreadyRegistered(AuthError):
    kind = AuthErrorKind.already_registered
    status_code = 400
    default_message = "This email is already registered and verified."


class AlreadyVerified(AuthError):
    kind = AuthErrorKind.already_verified
    status_code = 400
    default_message = "Email is already verified"


class InvalidCredential(AuthError):
    kind = AuthErrorKind.invalid_credential
    status_code = 400
    default_message = "Invalid verification code or email"


class NoCredential(AuthError):
    """Password login against an account that has no password (external sign-in only).

    Kept as its own kind for logs and callers, but rendered exactly like a
    failed login so the response does not reveal that the email is registered.
    """

    kind = AuthErrorKind.no_credential
    status_code = 401
    default_message = "Invalid email or password"

    def to_error(self) -> dict:
        return {"code": AuthErrorKind.invalid_credential.value, "message": self.message}


class Expired(AuthError):
    kind = AuthErrorKind.expired
    status_code = 400
    default_message = "Verification code has expired"


class InvalidOrExpiredToken(AuthError):
    kind = AuthErrorKind.invalid_or_expired_token
    status_code = 400
    default_message = "Invalid or expired reset token"


class NotVerified(AuthError):
    kind = AuthErrorKind.not_verified
    status_code = 403
    default_message = "Please verify your email before logging in. Check your inbox for the verification code."


class Unauthorized(AuthError):
    kind = AuthErrorKind.unauthorized
    status_code = 401
    default_message = "Unauthorized"


class NotFound(AuthError):
    kind = AuthErrorKind.not_found
    status_code = 404
    default_message = "User not found"


class IdentityConflict(AuthError):
    kind = AuthErrorKind.identity_conflict
    status_code = 409
    default_message = "This account is already linked to a different external identity"


class InfrastructureError(Exception):
    """Base class for failures outside the lifecycle's own decisions."""


class StoreError(InfrastructureError):
    pass


class AccountConflictError(StoreError):
    """A create collided with an existing row (unique email or external identity)."""


class ConcurrentUpdateError(StoreError):
    """The row changed between read and write (version mismatch)."""


class NotificationError(InfrastructureError):
    pass


class SigningError(InfrastructureError):
    pass


class OAuthProviderError(InfrastructureError):
    pass
