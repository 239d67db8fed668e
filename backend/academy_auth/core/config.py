import json

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Resolve backend root (…/backend/) regardless of current working directory
BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    # Read backend/.env and ignore unrelated keys so a shared env file never breaks startup
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Academy Auth"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    # One origin or several, comma separated or as a JSON list.
    # Example: "http://localhost:3000,https://academy.example.com"
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'academy_auth.db'}"
    # Create missing tables on startup (dev/tests). Production runs Alembic instead.
    AUTO_CREATE_TABLES: bool = True

    # ===== Session tokens =====
    # No default on purpose: signing without a key fails loudly at request time.
    JWT_SECRET_KEY: str | None = None
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # ===== Verification / reset windows =====
    VERIFICATION_CODE_TTL_MINUTES: int = 10
    PASSWORD_RESET_TTL_MINUTES: int = 60

    # bcrypt cost factor (4..31). Tests lower this to keep the suite fast.
    BCRYPT_ROUNDS: int = 12

    # ===== Outbound mail =====
    # resend: deliver through the Resend API (needs RESEND_API_KEY + EMAIL_FROM)
    # log:    write the message to the application log (local development only)
    MAIL_BACKEND: str = "resend"
    RESEND_API_KEY: str | None = None
    EMAIL_FROM: str = "Academy <noreply@academy.local>"

    # Frontend base URL, used for reset links and OAuth redirects.
    FRONTEND_URL: str = "http://localhost:3000"

    # ===== Google OAuth =====
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_CALLBACK_URL: str = "http://localhost:8000/api/auth/google/callback"
    GOOGLE_HTTP_TIMEOUT_SEC: int = 10

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        if v is None or v == "":
            return []

        if isinstance(v, list):
            return v

        # JSON list first, then comma separated
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                try:
                    return json.loads(s)
                except ValueError:
                    pass
            return [item.strip() for item in s.split(",") if item.strip()]

        return v

    @field_validator("MAIL_BACKEND", mode="before")
    @classmethod
    def _normalize_mail_backend(cls, v):
        s = str(v or "resend").strip().lower()
        if s not in {"resend", "log"}:
            raise ValueError("MAIL_BACKEND must be 'resend' or 'log'")
        return s


settings = Settings()
