"""Error taxonomy for document resolution, validation and auth configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence


class OpenAPIClientError(Exception):
    pass


class DocumentInvalid(OpenAPIClientError):
    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Invalid OpenAPI document {source}: {reason}")
        self.source = source
        self.reason = reason


class DocumentUnavailable(OpenAPIClientError):
    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Could not read OpenAPI document {source}: {reason}")
        self.source = source
        self.reason = reason


class OperationNotFound(OpenAPIClientError):
    def __init__(self, operation_id: str, available: Sequence[str]) -> None:
        listing = ", ".join(available) if available else "none"
        super().__init__(
            f"Operation '{operation_id}' not found. Available operations: {listing}"
        )
        self.operation_id = operation_id
        self.available = list(available)


@dataclass(frozen=True)
class MissingParameter:
    name: str
    location: str

    def __str__(self) -> str:
        return f"{self.name} ({self.location})"


class ParameterValidationFailed(OpenAPIClientError):
    def __init__(self, operation_id: str, missing: Iterable[MissingParameter]) -> None:
        self.operation_id = operation_id
        self.missing: List[MissingParameter] = list(missing)
        listing = ", ".join(str(item) for item in self.missing)
        super().__init__(
            f"Missing required parameters for operation '{operation_id}': {listing}"
        )


class AuthConfigInvalid(OpenAPIClientError):
    def __init__(self, kind: str, missing_fields: Sequence[str]) -> None:
        self.kind = kind
        self.missing_fields = list(missing_fields)
        listing = ", ".join(self.missing_fields)
        super().__init__(f"Invalid '{kind}' auth configuration, missing: {listing}")


class BaseUrlMissing(OpenAPIClientError):
    def __init__(self, source: str) -> None:
        super().__init__(
            f"No server URL found for {source}; provide a base_url override"
        )
        self.source = source


class SessionNotFound(OpenAPIClientError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id
