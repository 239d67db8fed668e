"""Account lifecycle: registration, verification, login, password reset, OAuth.

Every operation reads "now" once from the injected clock and uses that instant
for all expiry decisions. The service holds no mutable state of its own; the
account row in the store is the single source of truth and is re-read at the
start of each operation.

Messages returned to callers are fixed strings. Enumeration-sensitive flows
(forgot password, resend for unknown emails) answer identically whether or
not the account exists.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from academy_auth.core.errors import (
    AlreadyRegistered,
    AlreadyVerified,
    Expired,
    IdentityConflict,
    InvalidCredential,
    InvalidOrExpiredToken,
    NoCredential,
    NotFound,
    NotVerified,
)
from academy_auth.core.security import PasswordCodec, SessionIssuer, utc_now
from academy_auth.core.tokens import TokenGenerator
from academy_auth.models.account import NAME_MAX_LENGTH, Account, Role
from academy_auth.services.account_store import AccountStore
from academy_auth.services.email_service import NotificationGateway, mask_email
from academy_auth.services.oauth_service import ExternalProfile, post_login_path

logger = logging.getLogger(__name__)


MSG_REGISTERED = "User created successfully. Please check your email for verification code."
MSG_REGISTER_RESENT = "Verification code resent. Please check your email."
MSG_VERIFIED = "Email verified successfully. You can now log in."
MSG_RESEND_GENERIC = "If that email exists and is not verified, a new verification code has been sent."
MSG_RESEND_ALREADY_VERIFIED = "This email is already verified. You can log in."
MSG_LOGIN_OK = "Login successful"
MSG_LOGIN_FAILED = "Invalid email or password"
MSG_LOGOUT = "Logged out successfully"
MSG_FORGOT_GENERIC = "If that email exists, a password reset link has been sent."
MSG_RESET_OK = "Password reset successful. You can now log in with your new password."


@dataclass
class AuthResult:
    status_code: int
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def body(self) -> Dict[str, Any]:
        return {"message": self.message, **self.data}


@dataclass(frozen=True)
class OAuthSignIn:
    account: Account
    token: str
    redirect_path: str
    outcome: str  # returning | linked | created


def public_user(account: Account, *, include_role: bool = True, include_verified: bool = False) -> Dict[str, Any]:
    """Minimal projection safe to return to clients (never credentials)."""
    out: Dict[str, Any] = {
        "id": int(account.id),
        "name": account.name,
        "email": account.email,
    }
    if include_role:
        out["role"] = account.role
    if include_verified:
        out["isVerified"] = bool(account.is_verified)
    return out


class AccountService:
    def __init__(
        self,
        *,
        store: AccountStore,
        mailer: NotificationGateway,
        sessions: SessionIssuer,
        passwords: PasswordCodec,
        tokens: Optional[TokenGenerator] = None,
        clock: Callable[[], datetime] = utc_now,
        verification_ttl: timedelta = timedelta(minutes=10),
        reset_ttl: timedelta = timedelta(hours=1),
    ):
        self.store = store
        self.mailer = mailer
        self.sessions = sessions
        self.passwords = passwords
        self.tokens = tokens or TokenGenerator()
        self.clock = clock
        self.verification_ttl = verification_ttl
        self.reset_ttl = reset_ttl

    # ------------------------------------------------------------------
    # Registration & verification
    # ------------------------------------------------------------------
    def register(self, name: str, email: str, password: str) -> AuthResult:
        now = self.clock()
        existing = self.store.find_by_email(email)

        if existing is not None and existing.is_verified:
            raise AlreadyRegistered()

        code = self.tokens.verification_code()
        expires = now + self.verification_ttl

        if existing is not None:
            # Unverified duplicate: same row, fresh credentials, fresh clock.
            existing.name = name
            existing.password_hash = self.passwords.hash(password)
            existing.set_verification_code(code, expires)
            account = self.store.save(existing)
            self.mailer.send_verification_email(account.email, code, account.name)
            logger.info("Re-registration for unverified account id=%s, code rotated", account.id)
            return AuthResult(200, MSG_REGISTER_RESENT, {"user": public_user(account, include_role=False)})

        account = Account(
            name=name,
            email=email,
            password_hash=self.passwords.hash(password),
            role=Role.user.value,
            is_verified=False,
        )
        account.set_verification_code(code, expires)
        account = self.store.create(account)
        self.mailer.send_verification_email(account.email, code, account.name)
        logger.info("Account created id=%s (%s), awaiting verification", account.id, mask_email(account.email))
        return AuthResult(201, MSG_REGISTERED, {"user": public_user(account, include_role=False)})

    def verify(self, email: str, code: str) -> AuthResult:
        now = self.clock()
        account = self.store.find_by_email(email)
        if account is None:
            raise InvalidCredential()
        if account.is_verified:
            raise AlreadyVerified()

        stored_code = account.verification_code
        expires = account.verification_code_expires
        if not stored_code or expires is None:
            raise InvalidCredential()
        # Boundary is exclusive: a code expiring exactly now is already dead.
        if expires <= now:
            raise Expired()
        # Exact match, no trimming or case folding.
        if not secrets.compare_digest(stored_code.encode("utf-8"), str(code).encode("utf-8")):
            raise InvalidCredential()

        account.is_verified = True
        account.clear_verification_code()
        self.store.save(account)
        logger.info("Account id=%s verified", account.id)
        return AuthResult(200, MSG_VERIFIED)

    def resend_verification(self, email: str) -> AuthResult:
        now = self.clock()
        account = self.store.find_by_email(email)
        if account is None:
            return AuthResult(200, MSG_RESEND_GENERIC)
        if account.is_verified:
            raise AlreadyVerified(MSG_RESEND_ALREADY_VERIFIED)

        code = self.tokens.verification_code()
        account.set_verification_code(code, now + self.verification_ttl)
        account = self.store.save(account)
        self.mailer.send_verification_email(account.email, code, account.name)
        logger.info("Verification code rotated for account id=%s", account.id)
        return AuthResult(200, MSG_RESEND_GENERIC)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def login(self, email: str, password: str) -> AuthResult:
        now = self.clock()
        account = self.store.find_by_email(email)
        if account is None:
            self.passwords.dummy_verify()
            logger.info("Login failed: unknown account")
            raise InvalidCredential(MSG_LOGIN_FAILED, status_code=401)
        if not account.has_password:
            # Same cost and same answer as an unknown email.
            self.passwords.dummy_verify()
            logger.info("Login refused for account id=%s: no password set", account.id)
            raise NoCredential(MSG_LOGIN_FAILED)
        if not self.passwords.verify(password, account.password_hash):
            logger.info("Login failed for account id=%s: wrong password", account.id)
            raise InvalidCredential(MSG_LOGIN_FAILED, status_code=401)
        # Only reachable with the right password, so it leaks nothing about existence.
        if not account.is_verified:
            raise NotVerified()

        token = self.sessions.issue(account_id=account.id, role=account.role, now=now)
        logger.info("Login succeeded for account id=%s", account.id)
        return AuthResult(200, MSG_LOGIN_OK, {"token": token, "user": public_user(account)})

    def logout(self) -> AuthResult:
        # Tokens are self-contained; nothing to revoke server side.
        return AuthResult(200, MSG_LOGOUT)

    def authenticate(self, token: Optional[str]) -> Account:
        claims = self.sessions.decode(token)
        account = self.store.find_by_id(claims.account_id)
        if account is None:
            raise NotFound()
        return account

    def current_user(self, token: Optional[str]) -> AuthResult:
        account = self.authenticate(token)
        return AuthResult(200, "OK", {"user": public_user(account, include_verified=True)})

    # ------------------------------------------------------------------
    # Password recovery
    # ------------------------------------------------------------------
    def forgot_password(self, email: str) -> AuthResult:
        now = self.clock()
        account = self.store.find_by_email(email)
        if account is None:
            return AuthResult(200, MSG_FORGOT_GENERIC)

        # Newest request wins: any earlier token is overwritten.
        token = self.tokens.reset_token()
        account.set_reset_token(token, now + self.reset_ttl)
        account = self.store.save(account)
        self.mailer.send_password_reset_email(account.email, token, account.name)
        logger.info("Password reset issued for account id=%s", account.id)
        return AuthResult(200, MSG_FORGOT_GENERIC)

    def reset_password(self, token: str, new_password: str) -> AuthResult:
        now = self.clock()
        account = self.store.find_by_live_reset_token(token, now=now)
        if account is None:
            raise InvalidOrExpiredToken()

        account.password_hash = self.passwords.hash(new_password)
        account.clear_reset_token()
        self.store.save(account)
        logger.info("Password reset completed for account id=%s", account.id)
        return AuthResult(200, MSG_RESET_OK)

    # ------------------------------------------------------------------
    # External identity
    # ------------------------------------------------------------------
    def oauth_sign_in(self, profile: ExternalProfile) -> OAuthSignIn:
        now = self.clock()

        account = self.store.find_by_external_identity(profile.provider, profile.subject)
        outcome = "returning"

        if account is None:
            account = self.store.find_by_email(profile.email)
            if account is not None:
                # One external identity per account; the lookup above already ruled out this one.
                if account.oauth_subject is not None:
                    logger.warning("OAuth link refused for account id=%s: already linked elsewhere", account.id)
                    raise IdentityConflict()
                account.link_external_identity(profile.provider, profile.subject)
                # The provider vouched for the address.
                account.is_verified = True
                account.clear_verification_code()
                account = self.store.save(account)
                outcome = "linked"
            else:
                account = Account(
                    name=(profile.display_name or profile.email.split("@", 1)[0])[:NAME_MAX_LENGTH],
                    email=profile.email,
                    password_hash=None,
                    role=Role.user.value,
                    is_verified=True,
                )
                account.link_external_identity(profile.provider, profile.subject)
                account = self.store.create(account)
                outcome = "created"

        token = self.sessions.issue(account_id=account.id, role=account.role, now=now)
        logger.info("OAuth sign-in (%s) via %s for account id=%s", outcome, profile.provider, account.id)
        return OAuthSignIn(
            account=account,
            token=token,
            redirect_path=post_login_path(account.role),
            outcome=outcome,
        )
