"""Operation lookup and filtered views over a normalized document."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .errors import OperationNotFound
from .models import ApiDocument, OperationDescriptor


class OperationIndex:
    def __init__(self, document: ApiDocument) -> None:
        self.document = document
        self._by_id: Dict[str, OperationDescriptor] = {
            op.operation_id: op for op in document.operations
        }

    def __len__(self) -> int:
        return len(self._by_id)

    def operation_ids(self) -> List[str]:
        return list(self._by_id)

    def find_by_id(self, operation_id: str) -> OperationDescriptor:
        operation = self._by_id.get(operation_id)
        if operation is None:
            raise OperationNotFound(operation_id, self.operation_ids())
        return operation

    def filter(self, tag: Optional[str] = None, method: Optional[str] = None) -> List[OperationDescriptor]:
        operations = list(self.document.operations)
        if tag:
            needle = tag.lower()
            operations = [op for op in operations if any(needle in t.lower() for t in op.tags)]
        if method:
            wanted = method.lower()
            operations = [op for op in operations if op.http_method.lower() == wanted]
        return operations

    def tags(self) -> List[str]:
        return list(dict.fromkeys(t for op in self.document.operations for t in op.tags))


def summarize_operation(operation: OperationDescriptor) -> Dict[str, Any]:
    return {
        "operationId": operation.operation_id,
        "method": operation.http_method,
        "path": operation.path_template,
        "summary": operation.summary,
        "tags": list(operation.tags),
    }


def describe_operation(operation: OperationDescriptor) -> Dict[str, Any]:
    described = summarize_operation(operation)
    described["description"] = operation.description
    described["parameters"] = [
        {
            "name": p.name,
            "in": p.location,
            "required": p.required,
            "schema": p.schema,
            "description": p.description,
        }
        for p in operation.parameters
    ]
    if operation.request_body:
        described["requestBody"] = {
            "required": operation.request_body.required,
            "contentType": operation.request_body.content_type,
            "schema": operation.request_body.schema,
            "description": operation.request_body.description,
        }
    described["responses"] = {
        status: {"description": r.description, "contentType": r.content_type}
        for status, r in operation.responses.items()
    }
    described["exampleParameters"] = example_arguments(operation)
    return described


def example_arguments(operation: OperationDescriptor) -> Dict[str, Any]:
    """Placeholder arguments for a call, derived from the informational schemas."""
    examples: Dict[str, Any] = {
        p.name: example_value(p.schema, p.name) for p in operation.parameters if p.required
    }
    body = operation.request_body
    if body and isinstance(body.schema, dict):
        properties = body.schema.get("properties") or {}
        if properties:
            examples["body"] = {
                name: example_value(schema, name) for name, schema in properties.items()
            }
    return examples


def example_value(schema: Optional[Dict[str, Any]], name: str) -> Any:
    schema = schema or {}
    if "example" in schema:
        return schema["example"]
    if schema.get("enum"):
        return schema["enum"][0]
    schema_type = schema.get("type")
    if schema_type == "integer":
        return 123
    if schema_type == "number":
        return 1.5
    if schema_type == "boolean":
        return True
    if schema_type == "array":
        return ["item1", "item2"]
    if schema_type == "object":
        return {}
    return f"example_{name}"
