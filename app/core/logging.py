"""Structured logging for the service edge.

Every record leaving the process is:
- stamped with the request id bound for the current request (if any)
- scrubbed: credentials are replaced by ``[REDACTED]`` while client
  identifiers (IP addresses, forwarded-for chains) are replaced by a short
  digest so throttled clients can still be correlated across log lines
- rendered as one JSON object per line, or as plain text for local runs
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Replaced by REDACTED
CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "secret",
        "token",
        "access_token",
        "refresh_token",
    }
)

# Replaced by hash_identifier() output
CLIENT_IDENTIFIER_KEYS: frozenset[str] = frozenset(
    {"client_ip", "client_key", "x-forwarded-for", "x-real-ip"}
)

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def bind_request_id(request_id: str | None) -> Token:
    """Bind ``request_id`` to the current context; pass the token to reset."""
    return _request_id_var.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id_var.reset(token)


def current_request_id() -> str | None:
    return _request_id_var.get()


def hash_identifier(value: str) -> str:
    """Short, stable digest so client identifiers never reach the logs raw."""
    return hashlib.sha256(value.encode()).hexdigest()[:16]


class RecordScrubber:
    """Rewrites log extras according to the credential and identifier key sets."""

    def __init__(
        self,
        credential_keys: Iterable[str] = CREDENTIAL_KEYS,
        identifier_keys: Iterable[str] = CLIENT_IDENTIFIER_KEYS,
    ) -> None:
        self.credential_keys = {k.lower() for k in credential_keys}
        self.identifier_keys = {k.lower() for k in identifier_keys}

    def scrub_field(self, key: str, value: Any) -> Any:
        lowered = key.lower()
        if lowered in self.credential_keys:
            return REDACTED
        if lowered in self.identifier_keys and value is not None:
            return hash_identifier(str(value))
        return self.scrub_value(value)

    def scrub_value(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {k: self.scrub_field(str(k), v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.scrub_value(v) for v in value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Return the record's ``extra`` fields, scrubbed."""
        return {
            key: self.scrub_field(key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }


class ContextFilter(logging.Filter):
    """Attach the bound request id and scrub extras in place.

    Runs on the handler so the plain formatter sees the same scrubbed values
    as the JSON one.
    """

    def __init__(self, scrubber: RecordScrubber | None = None) -> None:
        super().__init__()
        self.scrubber = scrubber or RecordScrubber()

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = current_request_id() or "-"
        if not getattr(record, "_scrubbed", False):
            for key, value in self.scrubber.extras(record).items():
                setattr(record, key, value)
            record._scrubbed = True
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: base fields, static fields, then extras."""

    def __init__(
        self,
        *,
        scrubber: RecordScrubber | None = None,
        static_fields: Mapping[str, Any] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.scrubber = scrubber or RecordScrubber()
        self.static_fields = dict(static_fields or {})
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            **self.static_fields,
        }
        if getattr(record, "_scrubbed", False):
            payload.update(
                (k, v) for k, v in vars(record).items()
                if k not in _RESERVED_ATTRS and not k.startswith("_")
            )
        else:
            payload.update(self.scrubber.extras(record))

        request_id = payload.pop("request_id", None)
        if request_id in (None, "-"):
            request_id = current_request_id()
        if request_id:
            payload["request_id"] = request_id

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/book_system.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(
    log_settings: LogSettings | None = None,
    *,
    static_fields: Mapping[str, Any] | None = None,
    debug: bool = False,
) -> None:
    """Install a single handler on the root logger.

    Args:
        log_settings: Log settings; the environment-loaded ones when omitted.
        static_fields: Fields stamped on every JSON record (app, environment).
        debug: Force DEBUG level regardless of the configured level.
    """
    cfg = log_settings or settings.log
    level = logging.DEBUG if debug else getattr(logging, cfg.level.upper(), logging.INFO)

    scrubber = RecordScrubber()
    handler = _build_handler(cfg)
    handler.addFilter(ContextFilter(scrubber))
    if cfg.format.lower() == "plain":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s")
        )
    else:
        handler.setFormatter(JsonFormatter(scrubber=scrubber, static_fields=static_fields))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # The access log middleware replaces uvicorn's access log
    logging.getLogger("uvicorn.access").disabled = True
