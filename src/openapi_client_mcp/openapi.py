"""OpenAPI document loader for local files and remote URLs."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

import httpx

from .errors import DocumentUnavailable
from .logging import redact_url
from .models import ApiDocument
from .normalizer import normalize


logger = logging.getLogger(__name__)


def is_remote_source(api_source: str) -> bool:
    return api_source.startswith(("http://", "https://"))


def resolve_source_identity(api_source: str, cwd: Optional[Path] = None) -> str:
    """Canonical identity: the URL verbatim, or the absolute file path."""
    api_source = api_source.strip()
    if is_remote_source(api_source):
        return api_source
    path = Path(api_source).expanduser()
    if not path.is_absolute():
        path = (cwd or Path.cwd()) / path
    return str(path.resolve())


class OpenAPILoader:
    def __init__(
        self,
        cache_seconds: int = 300,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cache_seconds = cache_seconds
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._cache: Dict[str, Tuple[float, ApiDocument]] = {}

    async def load(self, api_source: str) -> ApiDocument:
        identity = resolve_source_identity(api_source)
        cached = self._cache.get(identity)
        if cached and time.time() - cached[0] < self.cache_seconds:
            return cached[1]

        if is_remote_source(identity):
            text = await self._fetch_remote(identity)
        else:
            text = self._read_local(identity)

        document = normalize(text, identity)
        logger.info(
            "Loaded %s (%s %s): %d operations",
            redact_url(identity),
            document.title,
            document.version,
            len(document.operations),
        )
        self._cache[identity] = (time.time(), document)
        return document

    def invalidate(self, api_source: Optional[str] = None) -> None:
        if api_source is None:
            self._cache.clear()
            return
        self._cache.pop(resolve_source_identity(api_source), None)

    def _read_local(self, identity: str) -> str:
        path = Path(identity)
        if not path.is_file():
            raise DocumentUnavailable(identity, "file does not exist")
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentUnavailable(identity, str(exc)) from exc

    async def _fetch_remote(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, follow_redirects=True, transport=self.transport
            ) as client:
                response = await client.get(
                    url, headers={"Accept": "application/json, application/yaml, text/yaml, */*"}
                )
        except httpx.HTTPError as exc:
            logger.warning("Failed to fetch OpenAPI document: %s (%s)", redact_url(url), exc)
            raise DocumentUnavailable(url, str(exc) or exc.__class__.__name__) from exc

        if response.status_code != 200:
            logger.warning("Failed to fetch OpenAPI document: %s (%s)", redact_url(url), response.status_code)
            raise DocumentUnavailable(url, f"HTTP {response.status_code}: {response.reason_phrase}")
        return response.text
