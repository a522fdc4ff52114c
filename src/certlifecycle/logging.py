"""
certlifecycle logging.

All modules log under the ``certlifecycle`` namespace through ``get_logger``.
The library never installs output handlers; applications attach their own,
optionally with ``JSONFormatter`` for one-line JSON records in which
credentials are masked.

Usage:
    logger = get_logger(__name__)
    logger.info("Certificate requested", extra={"object_path": "\\\\VED\\\\Policy\\\\x"})

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logging.getLogger("certlifecycle").addHandler(handler)
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER_NAME = "certlifecycle"

REDACTED = "[REDACTED]"

# Key fragments naming credentials this client handles: bearer and refresh
# tokens, legacy API keys, PKCS#12 bundles and their passwords, private keys
CREDENTIAL_KEYS = (
    "access_token",
    "refresh_token",
    "token",
    "authorization",
    "api_key",
    "apikey",
    "x-venafi-api-key",
    "password",
    "p12",
    "pkcs12",
    "private_key",
    "privatekey",
)

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def is_credential_key(key: str) -> bool:
    key = key.lower()
    return any(fragment in key for fragment in CREDENTIAL_KEYS)


def redact(value: Any) -> Any:
    """Mask credential-named entries in nested dicts and lists."""
    if isinstance(value, dict):
        return {k: REDACTED if is_credential_key(str(k)) else redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields land under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_FIELDS}
        if extra:
            entry["extra"] = redact(extra)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Return ``name`` as a logger under the certlifecycle namespace."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


__all__ = [
    "JSONFormatter",
    "get_logger",
    "redact",
]
