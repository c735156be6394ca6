import os
import json
import logging

logger = logging.getLogger(__name__)


def _parse_cors_origins(value: str | None) -> list[str]:
    if not value:
        return ["*"]

    cleaned = value.strip()
    if not cleaned:
        return ["*"]

    if cleaned.startswith("["):
        try:
            parsed = json.loads(cleaned)
            if isinstance(parsed, list):
                origins = [str(item).strip() for item in parsed if str(item).strip()]
                if origins:
                    return origins
        except json.JSONDecodeError:
            logger.warning("CORS_ORIGINS is not valid JSON, falling back to comma list")

    origins = [item.strip() for item in cleaned.split(",") if item.strip()]
    return origins or ["*"]


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number, using %s", name, raw, default)
        return default


DATABASE_URL = os.environ.get("DATABASE_URL", "postgresql://localhost/vorniq")
SECRET_KEY = os.environ.get("SECRET_KEY", "vorniq-erp-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))
APP_NAME = os.environ.get("APP_NAME", "Vorniq")
PAYMENT_KEY_ID = os.environ.get("PAYMENT_KEY_ID", "")
CORS_ORIGINS = _parse_cors_origins(os.environ.get("CORS_ORIGINS"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
RECONCILIATION_TOLERANCE = _float_env("RECONCILIATION_TOLERANCE", 100.0)
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@vorniq.com")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")


def warn_missing_settings():
    for name in ("DATABASE_URL", "SECRET_KEY", "PAYMENT_KEY_ID"):
        if not os.environ.get(name):
            logger.warning("%s is not set, using the built-in default", name)
