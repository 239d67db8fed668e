from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from academy_auth.api.deps import get_account_service
from academy_auth.core.errors import NotificationError
from academy_auth.core.security import PasswordCodec, SessionIssuer
from academy_auth.core.tokens import TokenGenerator
from academy_auth.db.base import Base
from academy_auth.main import app
from academy_auth.services.account_service import AccountService
from academy_auth.services.account_store import SqlAccountStore


TEST_SECRET = "test-signing-key"


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingMailer:
    def __init__(self):
        self.verifications = []
        self.resets = []
        self.fail = False

    def send_verification_email(self, to_email, code, name):
        if self.fail:
            raise NotificationError("mail relay unavailable")
        self.verifications.append(SimpleNamespace(to=to_email, code=code, name=name))

    def send_password_reset_email(self, to_email, token, name):
        if self.fail:
            raise NotificationError("mail relay unavailable")
        self.resets.append(SimpleNamespace(to=to_email, token=token, name=name))

    @property
    def last_code(self):
        return self.verifications[-1].code

    @property
    def last_token(self):
        return self.resets[-1].token


class ScriptedTokens(TokenGenerator):
    """Hands out queued values first, then falls back to real random ones."""

    def __init__(self, codes=(), reset_tokens=()):
        super().__init__()
        self._codes = list(codes)
        self._reset_tokens = list(reset_tokens)

    def verification_code(self):
        if self._codes:
            return self._codes.pop(0)
        return super().verification_code()

    def reset_token(self):
        if self._reset_tokens:
            return self._reset_tokens.pop(0)
        return super().reset_token()


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return SqlAccountStore(db)


@pytest.fixture
def clock():
    # Anchored on real time so issued session tokens are not already expired.
    return FrozenClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def tokens():
    return ScriptedTokens()


@pytest.fixture
def passwords():
    # Minimum bcrypt cost keeps the suite fast.
    return PasswordCodec(rounds=4)


@pytest.fixture
def issuer():
    return SessionIssuer(TEST_SECRET, expires_minutes=1440)


@pytest.fixture
def service(store, mailer, issuer, passwords, tokens, clock):
    return AccountService(
        store=store,
        mailer=mailer,
        sessions=issuer,
        passwords=passwords,
        tokens=tokens,
        clock=clock,
    )


@pytest.fixture
def client(service):
    app.dependency_overrides[get_account_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
