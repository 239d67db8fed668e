from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Integer, String, UniqueConstraint, false, func
from sqlalchemy.orm import Mapped, mapped_column, validates

from academy_auth.db.base_class import Base
from academy_auth.db.types import UTCDateTime


class Role(str, Enum):
    user = "User"
    student = "Student"
    supervisor = "SuperVisor"
    admin = "Admin"


NAME_MAX_LENGTH = 120


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("oauth_provider", "oauth_subject", name="uq_accounts_external_identity"),
        CheckConstraint(
            "(verification_code IS NULL) = (verification_code_expires IS NULL)",
            name="ck_accounts_verification_pair",
        ),
        CheckConstraint(
            "(password_reset_token IS NULL) = (password_reset_expires IS NULL)",
            name="ck_accounts_reset_pair",
        ),
        CheckConstraint(
            "(oauth_provider IS NULL) = (oauth_subject IS NULL)",
            name="ck_accounts_external_identity_pair",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False)
    # Stored as supplied; uniqueness and lookups go through email_normalized.
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    email_normalized: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    # NULL for accounts created through OAuth only.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=Role.user.value, server_default=Role.user.value)

    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    verification_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    verification_code_expires: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    password_reset_token: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    oauth_provider: Mapped[str | None] = mapped_column(String(32), nullable=True)
    oauth_subject: Mapped[str | None] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    @validates("email")
    def _sync_normalized_email(self, key, value):
        self.email_normalized = normalize_email(value)
        return value

    # ----- verification pair -----
    def set_verification_code(self, code: str, expires_at: datetime) -> None:
        self.verification_code = code
        self.verification_code_expires = expires_at

    def clear_verification_code(self) -> None:
        self.verification_code = None
        self.verification_code_expires = None

    # ----- reset pair -----
    def set_reset_token(self, token: str, expires_at: datetime) -> None:
        self.password_reset_token = token
        self.password_reset_expires = expires_at

    def clear_reset_token(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None

    def link_external_identity(self, provider: str, subject: str) -> None:
        self.oauth_provider = provider
        self.oauth_subject = subject

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def __repr__(self) -> str:
        # No credential fields here: reprs end up in logs and tracebacks.
        return f"<Account id={self.id} role={self.role} verified={self.is_verified}>"
