"""Request synthesis: map caller parameters onto an operation's contract.

``validate_parameters`` must accept the parameters before ``build_request`` is
called; ``build_request`` is a pure function of its inputs.

Path, query and cookie values are percent-encoded with RFC 3986 rules and no safe
characters, so a space becomes ``%20`` and ``/`` becomes ``%2F``.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from .auth import AuthDescriptor, auth_headers
from .errors import MissingParameter, ParameterValidationFailed
from .models import HttpRequest, OperationDescriptor


BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
BODY_KEY = "body"
BODY_PREFIX = "body_"
DEFAULT_USER_AGENT = "openapi-client-mcp/1.0.0"


def validate_parameters(operation: OperationDescriptor, params: Optional[Mapping[str, Any]]) -> None:
    params = params or {}
    missing: List[MissingParameter] = [
        MissingParameter(p.name, p.location)
        for p in operation.parameters
        if p.required and params.get(p.name) is None
    ]

    body = operation.request_body
    if body and operation.http_method.upper() in BODY_METHODS:
        # Only presence is checked; a supplied body is passed through as-is.
        if body.required and _explicit_body(params) is None and not _prefixed_body(params):
            required_fields = _required_body_fields(body.schema)
            if required_fields:
                missing.extend(MissingParameter(name, "body") for name in required_fields)
            else:
                missing.append(MissingParameter(BODY_KEY, "body"))

    if missing:
        raise ParameterValidationFailed(operation.operation_id, missing)


def build_request(
    base_url: str,
    operation: OperationDescriptor,
    params: Optional[Mapping[str, Any]] = None,
    auth: Optional[AuthDescriptor] = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> HttpRequest:
    params = params or {}
    method = operation.http_method.upper()
    url = join_url(base_url, _expand_path(operation, params))

    query = [
        f"{_encode(p.name)}={_encode(stringify(params[p.name]))}"
        for p in operation.parameters_in("query")
        if params.get(p.name) is not None
    ]
    if query:
        url = f"{url}?{'&'.join(query)}"

    headers: Dict[str, str] = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": user_agent,
    }
    for parameter in operation.parameters_in("header"):
        if params.get(parameter.name) is not None:
            _set_header(headers, parameter.name, stringify(params[parameter.name]))

    cookies = [
        f"{p.name}={_encode(stringify(params[p.name]))}"
        for p in operation.parameters_in("cookie")
        if params.get(p.name) is not None
    ]
    if cookies:
        _set_header(headers, "Cookie", "; ".join(cookies))

    # Auth is applied last so it always overrides defaults and caller headers.
    if auth is not None:
        for name, value in auth_headers(auth).items():
            _set_header(headers, name, value)

    body = None
    if operation.request_body and method in BODY_METHODS:
        body = _serialize(_build_body(params))

    return HttpRequest(method=method, url=url, headers=headers, body=body)


def join_url(base_url: str, path: str) -> str:
    base = base_url[:-1] if base_url.endswith("/") else base_url
    return base + (path if path.startswith("/") else f"/{path}")


def stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, dict):
        return _serialize(value)
    return str(value)


def _expand_path(operation: OperationDescriptor, params: Mapping[str, Any]) -> str:
    path = operation.path_template
    for parameter in operation.parameters_in("path"):
        if params.get(parameter.name) is not None:
            path = path.replace(
                f"{{{parameter.name}}}", _encode(stringify(params[parameter.name]))
            )
    return path


def _build_body(params: Mapping[str, Any]) -> Any:
    explicit = _explicit_body(params)
    if explicit is not None:
        return explicit
    return _prefixed_body(params)


def _explicit_body(params: Mapping[str, Any]) -> Any:
    body = params.get(BODY_KEY)
    return body if isinstance(body, (dict, list)) else None


def _prefixed_body(params: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        key[len(BODY_PREFIX):]: value
        for key, value in params.items()
        if key.startswith(BODY_PREFIX) and len(key) > len(BODY_PREFIX)
    }


def _required_body_fields(schema: Any) -> List[str]:
    if not isinstance(schema, dict):
        return []
    return [str(name) for name in schema.get("required") or []]


def _set_header(headers: Dict[str, str], name: str, value: str) -> None:
    for existing in [key for key in headers if key.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


def _encode(value: str) -> str:
    return quote(value, safe="")


def _serialize(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
