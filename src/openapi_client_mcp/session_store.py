"""JSON-file backed credential and session store, keyed by API source identity."""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .auth import AuthDescriptor, auth_config, parse_auth, validate_auth
from .errors import AuthConfigInvalid, SessionNotFound


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StoredAuth(_CamelModel):
    type: Literal["apiKey", "bearer", "basic", "oauth2"]
    config: Dict[str, str] = Field(default_factory=dict)


class ApiMetadata(_CamelModel):
    title: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None


class CredentialRecord(_CamelModel):
    id: str
    name: str
    api_source: str
    base_url: Optional[str] = None
    auth_config: Optional[StoredAuth] = None
    created_at: datetime = Field(default_factory=_now)
    last_used_at: datetime = Field(default_factory=_now)
    metadata: Optional[ApiMetadata] = None


class SessionStorage(_CamelModel):
    sessions: Dict[str, CredentialRecord] = Field(default_factory=dict)
    active_session_id: Optional[str] = None


class CredentialStore:
    """Owns every persisted record; each mutation is flushed before returning.

    Build it with :meth:`load` before any request is synthesized so that the
    persisted credentials are visible to the very first call.
    """

    def __init__(self, path: Path, storage: Optional[SessionStorage] = None) -> None:
        self.path = path
        self._storage = storage or SessionStorage()

    @classmethod
    def load(cls, path: Path) -> "CredentialStore":
        path = Path(path).expanduser()
        if not path.exists():
            return cls(path)
        try:
            storage = SessionStorage.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", path, exc)
            return cls(path)
        logger.info("Loaded %d sessions from %s", len(storage.sessions), path)
        return cls(path, storage)

    # Credentials

    def resolve(self, api_source: str) -> Optional[AuthDescriptor]:
        record = self._storage.sessions.get(api_source)
        if record is None or record.auth_config is None:
            return None
        try:
            return parse_auth(record.auth_config.type, record.auth_config.config)
        except AuthConfigInvalid as exc:
            logger.warning("Ignoring stored auth for %s: %s", api_source, exc)
            return None

    def upsert(self, api_source: str, auth: AuthDescriptor) -> CredentialRecord:
        validate_auth(auth)
        record = self._storage.sessions.get(api_source) or self._new_record(api_source)
        record.auth_config = StoredAuth(type=auth.kind, config=auth_config(auth))
        record.last_used_at = _now()
        self._storage.sessions[api_source] = record
        self._flush()
        logger.info("Stored %s auth for %s", auth.kind, api_source)
        return record

    def remove_auth(self, api_source: str) -> bool:
        record = self._storage.sessions.get(api_source)
        if record is None or record.auth_config is None:
            return False
        record.auth_config = None
        self._flush()
        return True

    # Session records

    def get(self, api_source: str) -> Optional[CredentialRecord]:
        return self._storage.sessions.get(api_source)

    def get_by_id(self, session_id: str) -> Optional[CredentialRecord]:
        for record in self._storage.sessions.values():
            if record.id == session_id:
                return record
        return None

    def ensure_record(
        self,
        api_source: str,
        base_url: Optional[str] = None,
        metadata: Optional[ApiMetadata] = None,
    ) -> CredentialRecord:
        """Create the record for a newly resolved source, or refresh an existing one."""
        record = self._storage.sessions.get(api_source)
        if record is None:
            record = self._new_record(api_source, metadata)
            self._storage.sessions[api_source] = record
            logger.info("Created session %s for %s", record.id, api_source)
        if base_url:
            record.base_url = base_url
        if metadata is not None:
            record.metadata = metadata
        record.last_used_at = _now()
        self._storage.active_session_id = record.id
        self._flush()
        return record

    def list_records(self) -> List[CredentialRecord]:
        return sorted(
            self._storage.sessions.values(), key=lambda r: r.last_used_at, reverse=True
        )

    def active(self) -> Optional[CredentialRecord]:
        if not self._storage.active_session_id:
            return None
        return self.get_by_id(self._storage.active_session_id)

    def activate(self, session_id: str) -> CredentialRecord:
        record = self.get_by_id(session_id)
        if record is None:
            raise SessionNotFound(session_id)
        record.last_used_at = _now()
        self._storage.active_session_id = record.id
        self._flush()
        return record

    def delete(self, session_id: str) -> CredentialRecord:
        record = self.get_by_id(session_id)
        if record is None:
            raise SessionNotFound(session_id)
        del self._storage.sessions[record.api_source]
        if self._storage.active_session_id == session_id:
            remaining = self.list_records()
            self._storage.active_session_id = remaining[0].id if remaining else None
        self._flush()
        return record

    def _new_record(
        self, api_source: str, metadata: Optional[ApiMetadata] = None
    ) -> CredentialRecord:
        digest = hashlib.sha256(api_source.encode("utf-8")).hexdigest()[:12]
        return CredentialRecord(
            id=f"session_{digest}",
            name=(metadata.title if metadata and metadata.title else _source_name(api_source)),
            api_source=api_source,
            metadata=metadata,
        )

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = self._storage.model_dump_json(by_alias=True, indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".sessions-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _source_name(api_source: str) -> str:
    parsed = urlparse(api_source)
    if parsed.scheme in ("http", "https") and parsed.hostname:
        host = parsed.hostname
        if host.startswith("api."):
            host = host[len("api."):]
        return host.split(".")[0]
    return Path(api_source).stem or "API"
