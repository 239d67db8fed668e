from __future__ import annotations

import logging
import secrets
import urllib.parse
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from academy_auth.api.deps import get_account_service, get_google_client
from academy_auth.core.config import settings
from academy_auth.core.errors import AuthError, InfrastructureError
from academy_auth.core.tokens import TokenGenerator
from academy_auth.services.account_service import AccountService
from academy_auth.services.oauth_service import GoogleOAuthClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])

STATE_COOKIE = "oauth_state"
STATE_MAX_AGE_SEC = 600

_tokens = TokenGenerator()


def _frontend(path: str, query: Optional[dict] = None) -> str:
    base = settings.FRONTEND_URL.rstrip("/")
    url = f"{base}{path}"
    if query:
        url = f"{url}?{urllib.parse.urlencode(query)}"
    return url


def _failure_redirect() -> RedirectResponse:
    # The browser flow has a single error channel: back to the login page.
    resp = RedirectResponse(_frontend("/login", {"error": "oauth_failed"}), status_code=302)
    resp.delete_cookie(STATE_COOKIE, path="/")
    return resp


@router.get("/auth/google")
def google_start(google: GoogleOAuthClient = Depends(get_google_client)):
    state = _tokens.oauth_state()
    try:
        target = google.authorization_url(state)
    except InfrastructureError:
        logger.error("Google sign-in is not configured", exc_info=True)
        return _failure_redirect()

    resp = RedirectResponse(target, status_code=302)
    resp.set_cookie(
        key=STATE_COOKIE,
        value=state,
        max_age=STATE_MAX_AGE_SEC,
        httponly=True,
        secure=settings.ENV != "dev",
        samesite="lax",
        path="/",
    )
    return resp


@router.get("/auth/google/callback")
def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    google: GoogleOAuthClient = Depends(get_google_client),
    service: AccountService = Depends(get_account_service),
):
    if error:
        logger.info("Google sign-in cancelled or refused by provider: %s", error)
        return _failure_redirect()

    expected = request.cookies.get(STATE_COOKIE) or ""
    if not code or not state or not expected or not secrets.compare_digest(state.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Google callback rejected: missing code or state mismatch")
        return _failure_redirect()

    try:
        profile = google.fetch_profile(code)
        signed_in = service.oauth_sign_in(profile)
    except (AuthError, InfrastructureError) as exc:
        logger.warning("Google sign-in failed: %s", type(exc).__name__, exc_info=isinstance(exc, InfrastructureError))
        return _failure_redirect()
    except Exception:
        # The browser only understands the redirect, never a JSON 500.
        logger.error("Google sign-in failed unexpectedly", exc_info=True)
        return _failure_redirect()

    resp = RedirectResponse(
        _frontend("/auth/callback", {"token": signed_in.token, "next": signed_in.redirect_path}),
        status_code=302,
    )
    resp.delete_cookie(STATE_COOKIE, path="/")
    return resp
