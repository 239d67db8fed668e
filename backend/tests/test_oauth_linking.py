import http.client
import urllib.error
import urllib.request

import pytest

from academy_auth.core.errors import IdentityConflict, OAuthProviderError
from academy_auth.models.account import Account
from academy_auth.services import oauth_service
from academy_auth.services.oauth_service import ExternalProfile, GoogleOAuthClient, post_login_path


def _profile(subject="g-123", email="jane@x.com", name="Jane G"):
    return ExternalProfile(provider="google", subject=subject, email=email, display_name=name)


def test_unknown_identity_and_email_creates_verified_passwordless_account(service, store, issuer):
    out = service.oauth_sign_in(_profile())

    assert out.outcome == "created"
    assert out.redirect_path == "/course"
    acc = store.find_by_email("jane@x.com")
    assert acc.name == "Jane G"
    assert acc.is_verified is True
    assert acc.password_hash is None
    assert acc.role == "User"
    assert (acc.oauth_provider, acc.oauth_subject) == ("google", "g-123")
    assert issuer.decode(out.token).account_id == acc.id


def test_created_account_falls_back_to_email_local_part_for_name(service, store):
    service.oauth_sign_in(_profile(email="nobody@x.com", name=""))
    assert store.find_by_email("nobody@x.com").name == "nobody"


def test_existing_email_is_linked_and_verified(service, store, mailer, passwords):
    service.register("Jane", "Jane@X.com", "Secret123")

    out = service.oauth_sign_in(_profile(email="jane@x.com"))

    assert out.outcome == "linked"
    acc = store.find_by_email("jane@x.com")
    assert acc.is_verified is True
    assert acc.verification_code is None
    assert acc.verification_code_expires is None
    assert acc.oauth_subject == "g-123"
    # Password login keeps working after the link.
    assert passwords.verify("Secret123", acc.password_hash)
    assert service.login("jane@x.com", "Secret123").status_code == 200


def test_returning_identity_matches_on_subject_not_email(service, store):
    first = service.oauth_sign_in(_profile())
    again = service.oauth_sign_in(_profile(email="renamed@x.com"))

    assert again.outcome == "returning"
    assert again.account.id == first.account.id
    assert store.find_by_email("renamed@x.com") is None


def test_second_identity_for_linked_account_is_refused(service):
    service.oauth_sign_in(_profile(subject="g-1"))
    with pytest.raises(IdentityConflict) as exc:
        service.oauth_sign_in(_profile(subject="g-2"))
    assert exc.value.status_code == 409


def test_redirect_follows_role(service, store):
    acc = store.create(Account(name="Boss", email="boss@x.com", password_hash="x", role="Admin", is_verified=True))
    acc.link_external_identity("google", "g-admin")
    store.save(acc)

    out = service.oauth_sign_in(_profile(subject="g-admin", email="boss@x.com"))
    assert out.redirect_path == "/admin"


@pytest.mark.parametrize(
    "role,path",
    [("Admin", "/admin"), ("SuperVisor", "/admin"), ("Student", "/dashboard"), ("User", "/course"), (None, "/course")],
)
def test_post_login_path(role, path):
    assert post_login_path(role) == path


# ----- provider client -----


def _client():
    return GoogleOAuthClient(
        client_id="cid",
        client_secret="csecret",
        redirect_uri="http://localhost:8000/api/auth/google/callback",
        timeout_sec=3,
    )


def test_authorization_url_carries_state_and_scopes():
    url = _client().authorization_url("st4te")
    assert url.startswith(oauth_service.GOOGLE_AUTH_URL + "?")
    assert "state=st4te" in url
    assert "client_id=cid" in url
    assert "scope=openid+email+profile" in url


def test_unconfigured_client_is_a_provider_error():
    client = GoogleOAuthClient(client_id=None, client_secret=None, redirect_uri="http://x/cb")
    with pytest.raises(OAuthProviderError):
        client.authorization_url("s")


def test_fetch_profile_exchanges_code_then_reads_userinfo(monkeypatch):
    calls = {}

    def fake_post(url, form, *, timeout_sec):
        calls["post"] = (url, dict(form), timeout_sec)
        return {"access_token": "at-1"}

    def fake_get(url, *, timeout_sec, headers=None):
        calls["get"] = (url, dict(headers or {}))
        return {"sub": "g-9", "email": "j@x.com", "email_verified": True, "name": "J"}

    monkeypatch.setattr(oauth_service, "_http_post_form", fake_post)
    monkeypatch.setattr(oauth_service, "_http_get_json", fake_get)

    profile = _client().fetch_profile("auth-code")

    assert profile == ExternalProfile(provider="google", subject="g-9", email="j@x.com", display_name="J")
    assert calls["post"][0] == oauth_service.GOOGLE_TOKEN_URL
    assert calls["post"][1]["code"] == "auth-code"
    assert calls["post"][1]["grant_type"] == "authorization_code"
    assert calls["post"][2] == 3
    assert calls["get"][1]["Authorization"] == "Bearer at-1"


def test_fetch_profile_wraps_network_failures(monkeypatch):
    def boom(url, form, *, timeout_sec):
        raise urllib.error.URLError("unreachable")

    monkeypatch.setattr(oauth_service, "_http_post_form", boom)
    with pytest.raises(OAuthProviderError):
        _client().fetch_profile("auth-code")


def test_fetch_profile_requires_access_token(monkeypatch):
    monkeypatch.setattr(oauth_service, "_http_post_form", lambda url, form, *, timeout_sec: {"error": "invalid_grant"})
    with pytest.raises(OAuthProviderError):
        _client().fetch_profile("auth-code")


@pytest.mark.parametrize(
    "info",
    [
        {"email": "j@x.com", "email_verified": True},
        {"sub": "g-1", "email_verified": True},
        {"sub": "g-1", "email": "j@x.com", "email_verified": False},
        {"sub": "g-1", "email": "j@x.com"},
        ["not", "a", "dict"],
    ],
)
def test_profile_from_userinfo_rejects_incomplete_profiles(info):
    with pytest.raises(OAuthProviderError):
        _client().profile_from_userinfo(info)


def test_profile_from_userinfo_accepts_string_true():
    profile = _client().profile_from_userinfo({"sub": "g-1", "email": "j@x.com", "email_verified": "true"})
    assert profile.subject == "g-1"
    assert profile.display_name == ""


def test_fetch_profile_wraps_dropped_connection(monkeypatch):
    def dropped(req, timeout=None):
        raise http.client.RemoteDisconnected("Remote end closed connection without response")

    monkeypatch.setattr(urllib.request, "urlopen", dropped)
    with pytest.raises(OAuthProviderError):
        _client().fetch_profile("auth-code")


def test_fetch_profile_wraps_truncated_userinfo(monkeypatch):
    monkeypatch.setattr(oauth_service, "_http_post_form", lambda url, form, *, timeout_sec: {"access_token": "at"})

    def truncated(url, *, timeout_sec, headers=None):
        raise http.client.IncompleteRead(b"{\"sub\":", 40)

    monkeypatch.setattr(oauth_service, "_http_get_json", truncated)
    with pytest.raises(OAuthProviderError):
        _client().fetch_profile("auth-code")


def test_long_google_display_name_is_clipped_to_the_name_column(service, store):
    service.oauth_sign_in(_profile(name="N" * 300))
    assert store.find_by_email("jane@x.com").name == "N" * 120
