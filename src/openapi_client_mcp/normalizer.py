"""Normalize OpenAPI 2.x / 3.x documents into a single operation model."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import yaml

from .errors import DocumentInvalid
from .models import (
    PARAMETER_LOCATIONS,
    ApiDocument,
    OperationDescriptor,
    ParameterDescriptor,
    RequestBodyDescriptor,
    ResponseDescriptor,
)


logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "head", "options", "trace")

_SCHEMA_KEYS = (
    "type",
    "format",
    "enum",
    "default",
    "example",
    "minimum",
    "maximum",
    "minLength",
    "maxLength",
    "pattern",
    "items",
)


def parse_document_text(text: str, source: str) -> Dict[str, Any]:
    """Parse raw text as JSON, falling back to YAML."""
    try:
        data = json.loads(text)
    except ValueError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise DocumentInvalid(source, f"neither JSON nor YAML ({exc})") from exc

    if not isinstance(data, dict):
        raise DocumentInvalid(source, "document root is not an object")
    return data


def detect_spec_version(spec: Mapping[str, Any]) -> Optional[str]:
    if "swagger" in spec:
        return "2.x" if str(spec["swagger"]).startswith("2") else None
    if "openapi" in spec:
        return "3.x" if str(spec["openapi"]).startswith("3") else None
    if isinstance(spec.get("info"), dict) and ("paths" in spec or "components" in spec):
        return "3.x"
    return None


def normalize(source: str | Mapping[str, Any], source_identity: str) -> ApiDocument:
    spec = parse_document_text(source, source_identity) if isinstance(source, str) else dict(source)

    spec_version = detect_spec_version(spec)
    if spec_version is None:
        raise DocumentInvalid(source_identity, "not an OpenAPI 2.x or 3.x document")

    paths = spec.get("paths") or {}
    if not isinstance(paths, dict):
        raise DocumentInvalid(source_identity, "'paths' must be an object")
    resolved_paths = _RefResolver(spec, source_identity).resolve(paths)

    info = spec.get("info") if isinstance(spec.get("info"), dict) else {}
    return ApiDocument(
        source_identity=source_identity,
        title=str(info.get("title") or ""),
        version=str(info.get("version") or ""),
        description=info.get("description"),
        spec_version=spec_version,
        base_urls=tuple(_extract_base_urls(spec, spec_version)),
        operations=tuple(_extract_operations(spec, resolved_paths, spec_version)),
    )


class _RefResolver:
    """Inline local ``#/...`` references, rejecting external and cyclic ones."""

    def __init__(self, spec: Mapping[str, Any], source: str) -> None:
        self.spec = spec
        self.source = source
        self._cache: Dict[str, Any] = {}

    def resolve(self, node: Any, stack: Tuple[str, ...] = ()) -> Any:
        if isinstance(node, list):
            return [self.resolve(item, stack) for item in node]
        if not isinstance(node, dict):
            return node
        if "$ref" in node and isinstance(node["$ref"], str):
            return self._resolve_ref(node["$ref"], stack)
        return {key: self.resolve(value, stack) for key, value in node.items()}

    def _resolve_ref(self, ref: str, stack: Tuple[str, ...]) -> Any:
        if ref in stack:
            chain = " -> ".join((*stack, ref))
            raise DocumentInvalid(self.source, f"cyclic reference {chain}")
        if ref in self._cache:
            return self._cache[ref]
        if not ref.startswith("#"):
            raise DocumentInvalid(self.source, f"unresolved external reference {ref}")

        target: Any = self.spec
        pointer = ref[1:].lstrip("/")
        for raw in pointer.split("/") if pointer else []:
            token = raw.replace("~1", "/").replace("~0", "~")
            if isinstance(target, dict) and token in target:
                target = target[token]
            elif isinstance(target, list) and token.isdigit() and int(token) < len(target):
                target = target[int(token)]
            else:
                raise DocumentInvalid(self.source, f"unresolved reference {ref}")

        resolved = self.resolve(target, (*stack, ref))
        self._cache[ref] = resolved
        return resolved


def _extract_base_urls(spec: Mapping[str, Any], spec_version: str) -> List[str]:
    if spec_version == "3.x":
        servers = spec.get("servers") or []
        return [s["url"] for s in servers if isinstance(s, dict) and s.get("url")]

    host = spec.get("host")
    if not host:
        return []
    schemes = spec.get("schemes") or ["https"]
    return [f"{schemes[0]}://{host}{spec.get('basePath') or ''}"]


def _extract_operations(
    spec: Mapping[str, Any], paths: Mapping[str, Any], spec_version: str
) -> List[OperationDescriptor]:
    operations: List[OperationDescriptor] = []
    seen_ids: Set[str] = set()

    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            continue
        shared_parameters = path_item.get("parameters") or []

        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue

            raw_parameters = _merge_parameters(shared_parameters, operation.get("parameters") or [])
            if spec_version == "2.x":
                parameters, request_body = _split_swagger_parameters(spec, operation, raw_parameters)
                responses = _extract_swagger_responses(spec, operation)
            else:
                parameters = [
                    _build_parameter(p, p.get("schema"))
                    for p in raw_parameters
                    if p.get("in", "query") in PARAMETER_LOCATIONS
                ]
                request_body = _extract_request_body(operation.get("requestBody"))
                responses = _extract_responses(operation.get("responses"))

            operation_id = _unique_operation_id(
                operation.get("operationId") or fallback_operation_id(method, path), seen_ids
            )
            operations.append(
                OperationDescriptor(
                    operation_id=operation_id,
                    http_method=method.upper(),
                    path_template=path,
                    summary=operation.get("summary"),
                    description=operation.get("description"),
                    tags=tuple(dict.fromkeys(str(t) for t in operation.get("tags") or [])),
                    parameters=tuple(parameters),
                    request_body=request_body,
                    responses=responses,
                )
            )

    return operations


def fallback_operation_id(method: str, path: str) -> str:
    return f"{method.lower()}_{re.sub(r'[^a-zA-Z0-9]', '_', path)}"


def _unique_operation_id(candidate: str, seen_ids: Set[str]) -> str:
    operation_id = candidate
    suffix = 2
    while operation_id in seen_ids:
        operation_id = f"{candidate}_{suffix}"
        suffix += 1
    if operation_id != candidate:
        logger.warning("Duplicate operation id %s renamed to %s", candidate, operation_id)
    seen_ids.add(operation_id)
    return operation_id


def _merge_parameters(shared: List[Any], own: List[Any]) -> List[Dict[str, Any]]:
    merged: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for parameter in [*shared, *own]:
        if not isinstance(parameter, dict) or not parameter.get("name"):
            continue
        # Re-inserting an existing key keeps the path-item position.
        merged[(parameter["name"], parameter.get("in", "query"))] = parameter
    return list(merged.values())


def _build_parameter(parameter: Mapping[str, Any], schema: Any) -> ParameterDescriptor:
    location = parameter.get("in", "query")
    return ParameterDescriptor(
        name=parameter["name"],
        location=location,
        required=bool(parameter.get("required")) or location == "path",
        schema=schema if isinstance(schema, dict) else {},
        description=parameter.get("description"),
    )


def _extract_request_body(request_body: Any) -> Optional[RequestBodyDescriptor]:
    if not isinstance(request_body, dict):
        return None
    content = request_body.get("content") or {}
    if not content:
        return None

    content_type = next(iter(content))
    media_type = content[content_type] or {}
    return RequestBodyDescriptor(
        required=bool(request_body.get("required")),
        content_type=content_type,
        schema=media_type.get("schema"),
        description=request_body.get("description"),
    )


def _extract_responses(responses: Any) -> Dict[str, ResponseDescriptor]:
    extracted: Dict[str, ResponseDescriptor] = {}
    for status, response in (responses or {}).items():
        if not isinstance(response, dict):
            continue
        content_type = None
        schema = None
        content = response.get("content") or {}
        if content:
            content_type = next(iter(content))
            schema = (content[content_type] or {}).get("schema")
        extracted[str(status)] = ResponseDescriptor(
            description=response.get("description") or "No description",
            content_type=content_type,
            schema=schema,
        )
    return extracted


def _split_swagger_parameters(
    spec: Mapping[str, Any], operation: Mapping[str, Any], raw_parameters: List[Dict[str, Any]]
) -> Tuple[List[ParameterDescriptor], Optional[RequestBodyDescriptor]]:
    consumes = operation.get("consumes") or spec.get("consumes") or []
    parameters: List[ParameterDescriptor] = []
    body: Optional[RequestBodyDescriptor] = None
    form_properties: Dict[str, Any] = {}
    form_required: List[str] = []

    for raw in raw_parameters:
        location = raw.get("in")
        if location == "body":
            body = RequestBodyDescriptor(
                required=bool(raw.get("required")),
                content_type=consumes[0] if consumes else "application/json",
                schema=raw.get("schema"),
                description=raw.get("description"),
            )
        elif location == "formData":
            form_properties[raw["name"]] = _swagger_schema(raw)
            if raw.get("required"):
                form_required.append(raw["name"])
        elif raw.get("in", "query") in PARAMETER_LOCATIONS:
            parameters.append(_build_parameter(raw, _swagger_schema(raw)))

    if body is None and form_properties:
        schema: Dict[str, Any] = {"type": "object", "properties": form_properties}
        if form_required:
            schema["required"] = form_required
        body = RequestBodyDescriptor(
            required=bool(form_required),
            content_type=consumes[0] if consumes else "application/x-www-form-urlencoded",
            schema=schema,
        )
    return parameters, body


def _swagger_schema(parameter: Mapping[str, Any]) -> Dict[str, Any]:
    if isinstance(parameter.get("schema"), dict):
        return parameter["schema"]
    return {key: parameter[key] for key in _SCHEMA_KEYS if key in parameter}


def _extract_swagger_responses(
    spec: Mapping[str, Any], operation: Mapping[str, Any]
) -> Dict[str, ResponseDescriptor]:
    produces = operation.get("produces") or spec.get("produces") or []
    extracted: Dict[str, ResponseDescriptor] = {}
    for status, response in (operation.get("responses") or {}).items():
        if not isinstance(response, dict):
            continue
        schema = response.get("schema")
        extracted[str(status)] = ResponseDescriptor(
            description=response.get("description") or "No description",
            content_type=produces[0] if produces and schema is not None else None,
            schema=schema,
        )
    return extracted
