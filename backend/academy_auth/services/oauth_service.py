"""Google sign-in (authorization-code flow) and post-login routing.

Only two HTTP calls are made, both with a timeout:
- POST https://oauth2.googleapis.com/token            (code -> access token)
- GET  https://openidconnect.googleapis.com/v1/userinfo (access token -> profile)
"""

from __future__ import annotations

import http.client
import json
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Optional

from academy_auth.core.errors import OAuthProviderError
from academy_auth.models.account import Role

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

_USER_AGENT = "academy-auth/1.0"


@dataclass(frozen=True)
class ExternalProfile:
    provider: str
    subject: str
    email: str
    display_name: str = ""


_ROLE_DESTINATIONS = {
    Role.admin.value: "/admin",
    Role.supervisor.value: "/admin",
    Role.student.value: "/dashboard",
}


def post_login_path(role: Optional[str]) -> str:
    return _ROLE_DESTINATIONS.get(str(role or ""), "/course")


def _http_get_json(url: str, *, timeout_sec: int, headers: Optional[dict[str, str]] = None) -> Any:
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT, **(headers or {})})
    with urllib.request.urlopen(req, timeout=float(timeout_sec)) as resp:
        data = resp.read()
    return json.loads(data.decode("utf-8"))


def _http_post_form(url: str, form: Dict[str, str], *, timeout_sec: int) -> Any:
    body = urllib.parse.urlencode(form).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=body,
        method="POST",
        headers={"User-Agent": _USER_AGENT, "Content-Type": "application/x-www-form-urlencoded"},
    )
    with urllib.request.urlopen(req, timeout=float(timeout_sec)) as resp:
        data = resp.read()
    return json.loads(data.decode("utf-8"))


class GoogleOAuthClient:
    provider = "google"

    def __init__(
        self,
        *,
        client_id: Optional[str],
        client_secret: Optional[str],
        redirect_uri: str,
        timeout_sec: int = 10,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout_sec = int(timeout_sec)

    def _require_config(self) -> None:
        if not self.client_id or not self.client_secret:
            raise OAuthProviderError("GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not configured")

    def authorization_url(self, state: str) -> str:
        self._require_config()
        query = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urllib.parse.urlencode(query)}"

    def fetch_profile(self, code: str) -> ExternalProfile:
        self._require_config()
        try:
            tokens = _http_post_form(
                GOOGLE_TOKEN_URL,
                {
                    "code": code,
                    "client_id": str(self.client_id),
                    "client_secret": str(self.client_secret),
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
                timeout_sec=self.timeout_sec,
            )
            access_token = str((tokens or {}).get("access_token") or "")
            if not access_token:
                raise OAuthProviderError("Google token response missing access_token")

            info = _http_get_json(
                GOOGLE_USERINFO_URL,
                timeout_sec=self.timeout_sec,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except (OSError, http.client.HTTPException, ValueError) as exc:
            # OSError covers URLError, timeouts and dropped connections; HTTPException
            # covers IncompleteRead and RemoteDisconnected; ValueError covers bad JSON.
            raise OAuthProviderError("Google sign-in request failed") from exc

        return self.profile_from_userinfo(info)

    def profile_from_userinfo(self, info: Any) -> ExternalProfile:
        if not isinstance(info, dict):
            raise OAuthProviderError("Google userinfo response is not an object")

        subject = str(info.get("sub") or "").strip()
        email = str(info.get("email") or "").strip()
        if not subject:
            raise OAuthProviderError("Google profile missing subject")
        if not email:
            raise OAuthProviderError("Google profile missing email")
        # Linking trusts the provider's verification; an unverified Google email is not trusted.
        if info.get("email_verified") not in (True, "true"):
            raise OAuthProviderError("Google email is not verified")

        return ExternalProfile(
            provider=self.provider,
            subject=subject,
            email=email,
            display_name=str(info.get("name") or "").strip(),
        )
