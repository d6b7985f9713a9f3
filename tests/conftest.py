"""Shared fixtures: sample OpenAPI documents, stores and fake transports"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
import pytest

from openapi_client_mcp.session_store import CredentialStore


@pytest.fixture
def petstore_v3() -> Dict[str, Any]:
    """OpenAPI 3.0 document with path-level params, refs and a required body"""
    return {
        "openapi": "3.0.3",
        "info": {"title": "Petstore", "version": "1.0.0", "description": "Sample pets API"},
        "servers": [{"url": "https://petstore.example.com/v1/"}, {"url": "https://staging.example.com"}],
        "paths": {
            "/pets": {
                "get": {
                    "operationId": "listPets",
                    "summary": "List all pets",
                    "tags": ["pets"],
                    "parameters": [
                        {"name": "status", "in": "query", "schema": {"type": "string", "enum": ["available", "sold"]}},
                        {"name": "limit", "in": "query", "schema": {"type": "integer"}},
                        {"name": "X-Trace-Id", "in": "header", "schema": {"type": "string"}},
                    ],
                    "responses": {
                        "200": {
                            "description": "A list of pets",
                            "content": {"application/json": {"schema": {"type": "array", "items": {"$ref": "#/components/schemas/Pet"}}}},
                        }
                    },
                },
                "post": {
                    "operationId": "createPet",
                    "tags": ["pets", "admin"],
                    "requestBody": {
                        "required": True,
                        "content": {
                            "application/json": {"schema": {"$ref": "#/components/schemas/Pet"}},
                            "application/xml": {"schema": {"type": "string"}},
                        },
                    },
                    "responses": {"201": {"description": "Created"}},
                },
            },
            "/pets/{petId}": {
                "parameters": [
                    {"name": "petId", "in": "path", "required": True, "schema": {"type": "integer"}},
                    {"name": "verbose", "in": "query", "description": "path level", "schema": {"type": "boolean"}},
                ],
                "get": {
                    "operationId": "showPetById",
                    "tags": ["pets"],
                    "parameters": [
                        {"name": "verbose", "in": "query", "description": "operation level", "schema": {"type": "boolean"}},
                        {"$ref": "#/components/parameters/Authorization"},
                    ],
                    "responses": {"200": {"description": "A pet"}, "404": {"description": "Not found"}},
                },
                "delete": {"tags": ["pets"], "responses": {"204": {"description": "Deleted"}}},
            },
            "/users": {
                "post": {
                    "operationId": "createUser",
                    "tags": ["users"],
                    "requestBody": {
                        "required": True,
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "required": ["username", "email"],
                                    "properties": {
                                        "username": {"type": "string"},
                                        "email": {"type": "string", "example": "jane@example.com"},
                                    },
                                }
                            }
                        },
                    },
                    "responses": {"201": {"description": "Created"}},
                }
            },
        },
        "components": {
            "schemas": {
                "Pet": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string"},
                        "status": {"type": "string"},
                        "owner": {"$ref": "#/components/schemas/Owner"},
                    },
                },
                "Owner": {"type": "object", "properties": {"name": {"type": "string"}}},
            },
            "parameters": {
                "Authorization": {"name": "Authorization", "in": "header", "schema": {"type": "string"}},
            },
        },
    }


@pytest.fixture
def petstore_v2() -> Dict[str, Any]:
    """Swagger 2.0 document with body, formData and shared parameters"""
    return {
        "swagger": "2.0",
        "info": {"title": "Legacy Pets", "version": "0.9"},
        "host": "legacy.example.com",
        "basePath": "/api",
        "schemes": ["http", "https"],
        "consumes": ["application/json"],
        "produces": ["application/json"],
        "paths": {
            "/pets": {
                "post": {
                    "operationId": "addPet",
                    "parameters": [
                        {"name": "pet", "in": "body", "required": True, "schema": {"$ref": "#/definitions/Pet"}},
                    ],
                    "responses": {"200": {"description": "ok", "schema": {"$ref": "#/definitions/Pet"}}},
                },
                "get": {
                    "parameters": [
                        {"name": "tags", "in": "query", "type": "array", "items": {"type": "string"}},
                    ],
                    "responses": {"200": {"description": "ok"}},
                },
            },
            "/pets/{petId}/photo": {
                "post": {
                    "operationId": "uploadPhoto",
                    "consumes": ["multipart/form-data"],
                    "parameters": [
                        {"name": "petId", "in": "path", "type": "integer"},
                        {"name": "caption", "in": "formData", "type": "string", "required": True},
                        {"name": "file", "in": "formData", "type": "file"},
                    ],
                    "responses": {"200": {"description": "ok"}},
                }
            },
        },
        "definitions": {"Pet": {"type": "object", "properties": {"name": {"type": "string"}}}},
    }


@pytest.fixture
def write_document(tmp_path: Path) -> Callable[[Dict[str, Any], str], Path]:
    """Write a document to disk as JSON and return its path"""

    def _write(document: Dict[str, Any], name: str = "openapi.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def session_file(tmp_path: Path) -> Path:
    return tmp_path / "state" / "sessions.json"


@pytest.fixture
def store(session_file: Path) -> CredentialStore:
    return CredentialStore.load(session_file)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def recording_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    return RecordingTransport
