# backend/efectivio/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/efectivio.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///efectivio.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Identity: "local" (bcrypt + session tokens) or "remote" (hosted identity service)
    AUTH_PROVIDER = os.environ.get("AUTH_PROVIDER", "local")
    IDENTITY_PROVIDER_URL = os.environ.get("IDENTITY_PROVIDER_URL")
    IDENTITY_PROVIDER_API_KEY = os.environ.get("IDENTITY_PROVIDER_API_KEY")
    IDENTITY_WEBHOOK_SECRET = os.environ.get("IDENTITY_WEBHOOK_SECRET")

    # Object storage: "memory" for development, "supabase" for the hosted bucket API
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "memory")
    STORAGE_URL = os.environ.get("STORAGE_URL")
    STORAGE_SERVICE_KEY = os.environ.get("STORAGE_SERVICE_KEY")

    SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY")
    EMAIL_FROM = os.environ.get("EMAIL_FROM", "noreply@efectivio.com")
    APP_URL = os.environ.get("APP_URL", "http://localhost:5173")

    OUTBOUND_TIMEOUT_SECONDS = float(os.environ.get("OUTBOUND_TIMEOUT_SECONDS", "10"))

    MAX_UPLOAD_BYTES = _env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
    MAX_AVATAR_BYTES = _env_int("MAX_AVATAR_BYTES", 5 * 1024 * 1024)
    MAX_CONTENT_LENGTH = max(MAX_UPLOAD_BYTES, MAX_AVATAR_BYTES) + 64 * 1024
    SIGNED_URL_TTL_SECONDS = _env_int("SIGNED_URL_TTL_SECONDS", 3600)
    INVITATION_TTL_DAYS = _env_int("INVITATION_TTL_DAYS", 7)
    INVOICE_DUE_DAYS = _env_int("INVOICE_DUE_DAYS", 30)

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    }
