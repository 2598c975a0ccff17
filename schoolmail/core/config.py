import os
from dataclasses import dataclass, field
from typing import Mapping

from dotenv import load_dotenv


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    app_env: str = "development"

    database_url: str = "sqlite:///./schoolmail.db"

    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 8 * 60

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_verify_cert: bool = True
    smtp_timeout_seconds: float = 30.0
    mail_from: str = ""

    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    api_prefix: str = "/api"
    log_level: str = "INFO"


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build the process settings from the environment.

    Called once when the application is created; everything downstream gets
    the resulting object passed in rather than reading the environment.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    smtp_username = environ.get("SMTP_USERNAME", "")

    return Settings(
        app_env=environ.get("APP_ENV", "development"),
        database_url=environ.get("DATABASE_URL", "sqlite:///./schoolmail.db"),
        jwt_secret_key=environ.get("JWT_SECRET_KEY", "change-me"),
        jwt_algorithm=environ.get("JWT_ALGORITHM", "HS256"),
        jwt_expires_minutes=int(environ.get("JWT_EXPIRES_MINUTES", "480")),
        smtp_host=environ.get("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=int(environ.get("SMTP_PORT", "587")),
        smtp_username=smtp_username,
        smtp_password=environ.get("SMTP_PASSWORD", ""),
        smtp_use_tls=_get_bool(environ.get("SMTP_USE_TLS"), default=True),
        smtp_verify_cert=_get_bool(environ.get("SMTP_VERIFY_CERT"), default=True),
        smtp_timeout_seconds=float(environ.get("SMTP_TIMEOUT_SECONDS", "30")),
        mail_from=environ.get("MAIL_FROM", smtp_username),
        cors_origins=_get_list(environ.get("CORS_ORIGINS"), default=["*"]),
        api_prefix=environ.get("API_PREFIX", "/api").rstrip("/"),
        log_level=environ.get("LOG_LEVEL", "INFO").upper(),
    )


def validate_runtime_config(settings: Settings) -> None:
    if settings.app_env.lower() == "production" and settings.jwt_secret_key == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
