"""Core call orchestration: resolve, validate, authenticate, synthesize, execute."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urljoin, urlparse

from .auth import AuthDescriptor, describe_auth, parse_auth, parse_inline_auth
from .config import Settings
from .errors import BaseUrlMissing, SessionNotFound
from .executors import RestExecutor
from .index import OperationIndex, describe_operation
from .logging import redact_payload, redact_url
from .models import ApiCallResult, ApiDocument, OperationDescriptor
from .openapi import OpenAPILoader, is_remote_source, resolve_source_identity
from .session_store import ApiMetadata, CredentialRecord, CredentialStore
from .synthesizer import build_request, validate_parameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallOutcome:
    result: ApiCallResult
    operation: OperationDescriptor


class ApiClientService:
    """
    Dispatch-facing service for OpenAPI-described APIs.

    Structural failures (unreadable document, unknown operation, missing
    parameters, bad auth config) raise before any network I/O. Transport
    failures come back inside the ``ApiCallResult``.
    """

    def __init__(
        self,
        settings: Settings,
        loader: OpenAPILoader,
        store: CredentialStore,
        executor: RestExecutor,
    ) -> None:
        self.settings = settings
        self.loader = loader
        self.store = store
        self.executor = executor

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApiClientService":
        return cls(
            settings=settings,
            loader=OpenAPILoader(
                cache_seconds=settings.openapi_document_cache_seconds,
                timeout_seconds=settings.openapi_document_timeout_seconds,
            ),
            store=CredentialStore.load(settings.session_file()),
            executor=RestExecutor(timeout_seconds=settings.openapi_request_timeout_seconds),
        )

    async def load_document(self, api_source: str) -> ApiDocument:
        document = await self.loader.load(api_source)
        self.store.ensure_record(
            document.source_identity,
            base_url=document.base_urls[0] if document.base_urls else None,
            metadata=ApiMetadata(
                title=document.title,
                version=document.version,
                description=document.description,
            ),
        )
        return document

    async def list_operations(
        self, api_source: str, tag: Optional[str] = None, method: Optional[str] = None
    ) -> Tuple[ApiDocument, List[OperationDescriptor]]:
        document = await self.load_document(api_source)
        return document, OperationIndex(document).filter(tag=tag, method=method)

    async def describe(self, api_source: str, operation_id: Optional[str] = None) -> Dict[str, Any]:
        document = await self.load_document(api_source)
        index = OperationIndex(document)
        if operation_id:
            return describe_operation(index.find_by_id(operation_id))

        return {
            "source": document.source_identity,
            "title": document.title,
            "version": document.version,
            "description": document.description,
            "specVersion": document.spec_version,
            "servers": list(document.base_urls),
            "operationCount": len(index),
            "tags": index.tags(),
            "authConfigured": self.store.resolve(document.source_identity) is not None,
        }

    async def call(
        self,
        api_source: str,
        operation_id: str,
        parameters: Optional[Mapping[str, Any]] = None,
        auth_config: Optional[Mapping[str, Any]] = None,
        base_url: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CallOutcome:
        parameters = dict(parameters or {})
        document = await self.load_document(api_source)
        operation = OperationIndex(document).find_by_id(operation_id)
        validate_parameters(operation, parameters)

        target = self._select_base_url(document, base_url)
        auth = self._resolve_auth(document.source_identity, auth_config)
        request = build_request(
            target, operation, parameters, auth, user_agent=self.settings.openapi_user_agent
        )

        logger.info(
            "Calling operation=%s source=%s params=%s",
            operation.operation_id,
            redact_url(document.source_identity),
            redact_payload(parameters),
        )
        result = await self.executor.execute(request, cancel_event=cancel_event)
        return CallOutcome(result=result, operation=operation)

    # Auth management

    def configure_auth(
        self, api_source: str, kind: str, config: Mapping[str, Any]
    ) -> CredentialRecord:
        identity = resolve_source_identity(api_source)
        return self.store.upsert(identity, parse_auth(kind, config))

    def show_auth(self, api_source: str) -> Optional[Dict[str, str]]:
        auth = self.store.resolve(resolve_source_identity(api_source))
        return describe_auth(auth) if auth else None

    def clear_auth(self, api_source: str) -> bool:
        return self.store.remove_auth(resolve_source_identity(api_source))

    # Session management

    def list_sessions(self) -> Tuple[List[CredentialRecord], Optional[CredentialRecord]]:
        return self.store.list_records(), self.store.active()

    def session_info(self, session_id: Optional[str] = None) -> CredentialRecord:
        record = self.store.get_by_id(session_id) if session_id else self.store.active()
        if record is None:
            raise SessionNotFound(session_id or "active")
        return record

    def activate_session(self, session_id: str) -> CredentialRecord:
        return self.store.activate(session_id)

    def delete_session(self, session_id: str) -> CredentialRecord:
        record = self.store.delete(session_id)
        self.loader.invalidate(record.api_source)
        return record

    def _resolve_auth(
        self, identity: str, inline: Optional[Mapping[str, Any]]
    ) -> Optional[AuthDescriptor]:
        if inline:
            logger.info("Using one-shot auth for %s", identity)
            return parse_inline_auth(inline)
        return self.store.resolve(identity)

    def _select_base_url(self, document: ApiDocument, override: Optional[str]) -> str:
        base_url = override or (document.base_urls[0] if document.base_urls else None)
        if not base_url:
            raise BaseUrlMissing(document.source_identity)
        if not urlparse(base_url).scheme and is_remote_source(document.source_identity):
            return urljoin(document.source_identity, base_url)
        return base_url
