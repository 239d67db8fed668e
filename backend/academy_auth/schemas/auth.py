from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from academy_auth.core.security import PASSWORD_MAX_BYTES
from academy_auth.models.account import NAME_MAX_LENGTH


_STRONG_PASSWORD = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def _check_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    if not _STRONG_PASSWORD.match(v):
        raise ValueError("Password must contain at least one uppercase letter, one lowercase letter, and one number")
    return v


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(max_length=200)

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        if len(v) > NAME_MAX_LENGTH:
            raise ValueError(f"Name must be at most {NAME_MAX_LENGTH} characters")
        return v

    @field_validator("password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        return _check_password_strength(v)


class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    # Not stripped: the code is compared byte for byte.
    verification_code: str = Field(alias="verificationCode", min_length=1, max_length=64)


class EmailRequest(BaseModel):
    email: EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=200)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1, max_length=256)
    new_password: str = Field(alias="newPassword", max_length=200)

    @field_validator("new_password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        return _check_password_strength(v)

