"""Internal models for normalized OpenAPI documents and HTTP calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


PARAMETER_LOCATIONS = ("path", "query", "header", "cookie")


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    location: str
    required: bool
    schema: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None


@dataclass(frozen=True)
class RequestBodyDescriptor:
    required: bool
    content_type: str
    schema: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ResponseDescriptor:
    description: str
    content_type: Optional[str] = None
    schema: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class OperationDescriptor:
    operation_id: str
    http_method: str
    path_template: str
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    parameters: Tuple[ParameterDescriptor, ...] = ()
    request_body: Optional[RequestBodyDescriptor] = None
    responses: Dict[str, ResponseDescriptor] = field(default_factory=dict)

    def parameters_in(self, location: str) -> Tuple[ParameterDescriptor, ...]:
        return tuple(p for p in self.parameters if p.location == location)


@dataclass(frozen=True)
class ApiDocument:
    source_identity: str
    title: str
    version: str
    spec_version: str
    description: Optional[str] = None
    base_urls: Tuple[str, ...] = ()
    operations: Tuple[OperationDescriptor, ...] = ()


@dataclass(frozen=True)
class HttpRequest:
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[str] = None


@dataclass
class ApiCallResult:
    success: bool
    execution_time: int
    status_code: Optional[int] = None
    data: Any = None
    error: Optional[str] = None
    headers: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.status_code is not None:
            result["statusCode"] = self.status_code
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        if self.headers is not None:
            result["headers"] = self.headers
        result["executionTime"] = self.execution_time
        return result
