"""Startup-time helpers for safe config logging."""

import os
from urllib.parse import urlsplit, urlunsplit

from foodpay.common.logging import logger


STARTUP_KEYS = (
    "SERVICE_NAME",
    "DATABASE_DSN",
    "REDIS_URL",
    "GATEWAY_BASE_URL",
    "GATEWAY_KEY_ID",
    "GATEWAY_KEY_SECRET",
    "GATEWAY_WEBHOOK_SECRET",
    "GATEWAY_TIMEOUT_SECONDS",
    "PAYMENT_CURRENCY",
    "WEBHOOK_DEDUPE_TTL_SECONDS",
    "NOTIFICATION_QUEUE_SIZE",
    "NOTIFICATION_SEND_TIMEOUT_SECONDS",
)


def _strip_userinfo(url: str) -> str:
    parts = urlsplit(url)
    if parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"{parts.username or ''}:<redacted>@{host}", parts.path, parts.query, ""))


def _safe_env(name: str) -> str:
    """Return env value with secrets redacted and URL passwords masked."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(secret in name for secret in ["KEY", "SECRET", "PASSWORD", "TOKEN", "DSN"]):
        return "<redacted>"
    if name.endswith("_URL"):
        return _strip_userinfo(value)
    return value


def log_startup_config(service_name: str, keys=STARTUP_KEYS) -> dict:
    """Log selected startup config keys and whether gateway credentials are present."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    config["gateway_credentials"] = bool(os.getenv("GATEWAY_KEY_ID") and os.getenv("GATEWAY_KEY_SECRET"))
    config["webhook_secret_set"] = bool(os.getenv("GATEWAY_WEBHOOK_SECRET"))
    logger.info("startup_config=%s", config)
    return config
