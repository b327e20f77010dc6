"""Structured logging setup for livesync.

Every log line includes: timestamp, level, module tag, message, and structured data.
Credentials are automatically redacted from log output.

Usage:
    from livesync.common.logging import get_logger
    logger = get_logger("STREAM")
    logger.info("Stream opened", extra={"data": {"url": "/v1/orders/stream"}})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime

# Module tags for structured logging
MODULE_TAGS = {
    "STREAM",
    "BACKOFF",
    "AUTH",
    "SESSION",
    "FEED",
    "SYSTEM",
    "TEST",
}

# Regex to find secret-looking values in JSON strings
_SECRET_KEY_PATTERN = re.compile(
    r'"([^"]*(?:key|secret|password|token|private|credential|authorization)[^"]*)":\s*"([^"]*)"',
    re.IGNORECASE,
)

_BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)


def _redact_secrets(text: str) -> str:
    """Replace secret-looking values and bearer tokens with [REDACTED] in a string."""
    text = _SECRET_KEY_PATTERN.sub(r'"\1": "[REDACTED]"', text)
    return _BEARER_PATTERN.sub(r"\1[REDACTED]", text)


class StructuredFormatter(logging.Formatter):
    """Formats log records as structured, human-readable lines.

    Output format:
        2026-02-15T10:30:00Z | INFO | STREAM | Stream opened | {"stream": "balances"}
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        level = record.levelname
        module_tag = getattr(record, "module_tag", "SYSTEM")

        data = getattr(record, "data", None)
        if data is not None:
            try:
                data_str = json.dumps(data, default=str)
                data_str = _redact_secrets(data_str)
            except (TypeError, ValueError):
                data_str = _redact_secrets(str(data))
        else:
            data_str = ""

        message = _redact_secrets(record.getMessage())

        parts = [timestamp, level, module_tag, message]
        if data_str:
            parts.append(data_str)

        return " | ".join(parts)


class ModuleTagLogger(logging.LoggerAdapter):
    """Logger adapter that injects module_tag and supports structured data.

    Usage:
        logger = get_logger("AUTH")
        logger.info("Token refreshed", extra={"data": {"waiters": 3}})
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra", {})
        extra["module_tag"] = self.extra.get("module_tag", "SYSTEM")
        kwargs["extra"] = extra
        return msg, kwargs


# Cache loggers to avoid duplicate handlers
_loggers: dict[str, ModuleTagLogger] = {}


def get_logger(module_tag: str) -> ModuleTagLogger:
    """Get a structured logger with the given module tag.

    Args:
        module_tag: One of the MODULE_TAGS (STREAM, BACKOFF, AUTH, etc.)

    Returns:
        A logger adapter that injects the module tag into every log line.
    """
    if module_tag in _loggers:
        return _loggers[module_tag]

    logger = logging.getLogger(f"livesync.{module_tag.lower()}")

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

    adapter = ModuleTagLogger(logger, {"module_tag": module_tag})
    _loggers[module_tag] = adapter
    return adapter
