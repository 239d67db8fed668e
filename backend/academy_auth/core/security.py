from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from academy_auth.core.errors import SigningError, Unauthorized


# bcrypt only reads the first 72 bytes; longer passwords would collide on their prefix.
PASSWORD_MAX_BYTES = 72


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PasswordCodec:
    """Hash and check account passwords with bcrypt."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=int(rounds),
            # Hashing a password past the bcrypt limit raises instead of truncating.
            bcrypt__truncate_error=True,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: Optional[str]) -> bool:
        if not password_hash:
            return False
        if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
            # Could only match through truncation; still pay for one hash check.
            self._context.dummy_verify()
            return False
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            # Malformed or foreign hash string: treat as a mismatch.
            return False

    def dummy_verify(self) -> None:
        """Burn one hash check so "no such account" takes as long as a real mismatch."""
        self._context.dummy_verify()


@dataclass(frozen=True)
class SessionClaims:
    account_id: int
    role: str
    issued_at: datetime
    expires_at: datetime


class SessionIssuer:
    """Sign and check compact session tokens (JWT) binding account id and role."""

    def __init__(
        self,
        secret_key: Optional[str],
        *,
        algorithm: str = "HS256",
        expires_minutes: int = 1440,
    ):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._ttl = timedelta(minutes=int(expires_minutes))

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def _key(self) -> str:
        if not self._secret_key:
            raise SigningError("JWT_SECRET_KEY is not configured")
        return self._secret_key

    def issue(self, *, account_id: int, role: str, now: Optional[datetime] = None) -> str:
        issued = now or utc_now()
        expire = issued + self._ttl
        to_encode: Dict[str, Any] = {
            "sub": str(account_id),
            "role": str(role),
            "iat": int(issued.timestamp()),
            "exp": int(expire.timestamp()),
        }
        try:
            return jwt.encode(to_encode, self._key(), algorithm=self._algorithm)
        except JWTError as exc:
            raise SigningError("Could not sign session token") from exc

    def decode(self, token: Optional[str]) -> SessionClaims:
        """Check signature and expiry; any failure is ``Unauthorized``."""
        if not token:
            raise Unauthorized()
        key = self._key()
        try:
            payload = jwt.decode(token, key, algorithms=[self._algorithm])
        except JWTError:
            raise Unauthorized("Invalid token.")

        try:
            account_id = int(payload["sub"])
            role = str(payload["role"])
            iat = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            exp = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError):
            raise Unauthorized("Invalid token.")
        return SessionClaims(account_id=account_id, role=role, issued_at=iat, expires_at=exp)
