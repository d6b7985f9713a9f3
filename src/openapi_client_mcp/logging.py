"""Logging helpers with redaction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping
from urllib.parse import unquote, urlsplit, urlunsplit


_SENSITIVE_KEYS = re.compile(r"(token|secret|api[_-]?key|password|authorization)", re.IGNORECASE)
_REDACTED = "***REDACTED***"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # httpx logs every request URL, query string included, at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def redact_payload(payload: Mapping[str, Any] | None) -> Dict[str, Any]:
    return {key: _redact_item(key, value) for key, value in (payload or {}).items()}


def _redact_item(key: Any, value: Any) -> Any:
    if _SENSITIVE_KEYS.search(str(key)):
        return _REDACTED
    return _redact_value(value)


def _redact_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return redact_payload(value)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    return value


def redact_url(url: str) -> str:
    """Mask query values whose names look like credentials."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    pairs = []
    for pair in parts.query.split("&"):
        name, sep, _ = pair.partition("=")
        if sep and _SENSITIVE_KEYS.search(unquote(name)):
            pair = f"{name}={_REDACTED}"
        pairs.append(pair)
    return urlunsplit(parts._replace(query="&".join(pairs)))


def mask_secret(value: str, visible: int = 4) -> str:
    """Keep the first few characters of a secret for display."""
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}***"
