import os


def _env_bool(name: str, default: bool = False) -> bool:
    """Return a boolean value from an environment variable.

    Accept the usual truthy spellings (``"1"``, ``"true"``, ``"yes"``,
    ``"on"``...).  Anything else is considered falsy so that accidental typos
    do not silently enable a feature.
    """

    raw_value = os.environ.get(name)
    if raw_value is None:
        return default
    normalized = str(raw_value).strip().lower()
    if not normalized:
        return False
    return normalized in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw_value = os.environ.get(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_secret_key() -> str:
    """Return SECRET_KEY from environment, or raise in production."""
    key = os.environ.get("SECRET_KEY")
    if key:
        return key
    # Allow insecure default only in development
    if os.environ.get("FLASK_ENV") == "development" or os.environ.get("FLASK_DEBUG"):
        return "dev-secret-insecure"
    raise RuntimeError(
        "SECRET_KEY must be set in production. "
        "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
    )


class Config:
    SECRET_KEY = _get_secret_key()
    WTF_CSRF_ENABLED = True
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "sqlite:///instance/presentoirs.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "")
    MAIL_PORT = _env_int("MAIL_PORT", 587)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", "")
    MAIL_DEFAULT_SENDER = os.environ.get(
        "MAIL_DEFAULT_SENDER", os.environ.get("MAIL_USERNAME", "no-reply@presentoirs.local")
    )
    SESSION_TIMEOUT_MINUTES = _env_int("SESSION_TIMEOUT_MINUTES", 30)
    # Absolute URL printed in QR codes; request host is used when empty.
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "")
    PUBLIC_LINK_SALT = "public-stand"

    # Policy applied to newly registered organizations.
    DEFAULT_MAX_RESERVATION_DAYS = _env_int("DEFAULT_MAX_RESERVATION_DAYS", 30)
    DEFAULT_MIN_ADVANCE_HOURS = _env_int("DEFAULT_MIN_ADVANCE_HOURS", 24)
    DEFAULT_PREVENTIVE_INTERVAL_MONTHS = _env_int(
        "DEFAULT_PREVENTIVE_INTERVAL_MONTHS", 3
    )
    NOTIFICATION_RETENTION_DAYS = _env_int("NOTIFICATION_RETENTION_DAYS", 90)
