"""FastAPI dependencies.

Process-wide collaborators (password codec, session issuer, mail gateway,
Google client) are built once from settings and cached. The lifecycle service
itself is cheap and built per request around that request's DB session.
Tests swap any of these through ``app.dependency_overrides``.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from academy_auth.core.config import settings
from academy_auth.core.security import PasswordCodec, SessionIssuer
from academy_auth.db.session import get_db
from academy_auth.services.account_service import AccountService
from academy_auth.services.account_store import SqlAccountStore
from academy_auth.services.email_service import NotificationGateway, build_notification_gateway
from academy_auth.services.oauth_service import GoogleOAuthClient


bearer = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_password_codec() -> PasswordCodec:
    return PasswordCodec(rounds=settings.BCRYPT_ROUNDS)


@lru_cache(maxsize=1)
def get_session_issuer() -> SessionIssuer:
    return SessionIssuer(
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


@lru_cache(maxsize=1)
def get_notification_gateway() -> NotificationGateway:
    return build_notification_gateway(settings)


@lru_cache(maxsize=1)
def get_google_client() -> GoogleOAuthClient:
    return GoogleOAuthClient(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        redirect_uri=settings.GOOGLE_CALLBACK_URL,
        timeout_sec=settings.GOOGLE_HTTP_TIMEOUT_SEC,
    )


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    return AccountService(
        store=SqlAccountStore(db),
        mailer=get_notification_gateway(),
        sessions=get_session_issuer(),
        passwords=get_password_codec(),
        verification_ttl=timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES),
        reset_ttl=timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES),
    )


def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Optional[str]:
    if not credentials:
        return None
    return credentials.credentials

