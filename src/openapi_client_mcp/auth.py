"""Outbound authentication descriptors and header application."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple, Union

from typing_extensions import assert_never

from .errors import AuthConfigInvalid
from .logging import mask_secret


@dataclass(frozen=True)
class ApiKeyAuth:
    header_name: str
    api_key: str

    kind = "apiKey"


@dataclass(frozen=True)
class BearerAuth:
    token: str

    kind = "bearer"


@dataclass(frozen=True)
class BasicAuth:
    username: str
    password: str

    kind = "basic"


@dataclass(frozen=True)
class OAuth2Auth:
    access_token: str

    kind = "oauth2"


AuthDescriptor = Union[ApiKeyAuth, BearerAuth, BasicAuth, OAuth2Auth]

# kind -> (descriptor class, ((config key, field name), ...))
_AUTH_KINDS: Dict[str, Tuple[type, Tuple[Tuple[str, str], ...]]] = {
    "apiKey": (ApiKeyAuth, (("headerName", "header_name"), ("apiKey", "api_key"))),
    "bearer": (BearerAuth, (("token", "token"),)),
    "basic": (BasicAuth, (("username", "username"), ("password", "password"))),
    "oauth2": (OAuth2Auth, (("accessToken", "access_token"),)),
}

AUTH_KINDS = tuple(_AUTH_KINDS)


def parse_auth(kind: str, config: Mapping[str, Any]) -> AuthDescriptor:
    """Build a descriptor from a kind and its camelCase config map.

    Every missing or empty field is collected before failing, so the caller
    can fix the whole configuration in one go.
    """
    if kind not in _AUTH_KINDS:
        raise AuthConfigInvalid(kind, [f"type (one of {', '.join(AUTH_KINDS)})"])

    descriptor_cls, fields = _AUTH_KINDS[kind]
    missing: List[str] = []
    values: Dict[str, str] = {}
    for config_key, field_name in fields:
        value = config.get(config_key)
        if value is None or str(value) == "":
            missing.append(config_key)
            continue
        values[field_name] = str(value)

    if missing:
        raise AuthConfigInvalid(kind, missing)
    return descriptor_cls(**values)


def parse_inline_auth(config: Mapping[str, Any]) -> AuthDescriptor:
    """Parse a one-shot ``{"type": kind, ...fields}`` auth map."""
    kind = config.get("type")
    if not kind:
        raise AuthConfigInvalid("unknown", ["type"])
    return parse_auth(str(kind), config)


def validate_auth(auth: AuthDescriptor) -> AuthDescriptor:
    return parse_auth(auth.kind, auth_config(auth))


def auth_config(auth: AuthDescriptor) -> Dict[str, str]:
    _, fields = _AUTH_KINDS[auth.kind]
    return {config_key: getattr(auth, field_name) for config_key, field_name in fields}


def auth_headers(auth: AuthDescriptor) -> Dict[str, str]:
    if isinstance(auth, ApiKeyAuth):
        return {auth.header_name: auth.api_key}
    if isinstance(auth, BearerAuth):
        return {"Authorization": f"Bearer {auth.token}"}
    if isinstance(auth, BasicAuth):
        credentials = f"{auth.username}:{auth.password}".encode("utf-8")
        return {"Authorization": f"Basic {base64.b64encode(credentials).decode('ascii')}"}
    if isinstance(auth, OAuth2Auth):
        return {"Authorization": f"Bearer {auth.access_token}"}
    assert_never(auth)


def describe_auth(auth: AuthDescriptor) -> Dict[str, str]:
    """Display form with secrets masked."""
    if isinstance(auth, ApiKeyAuth):
        return {"type": auth.kind, "headerName": auth.header_name, "apiKey": mask_secret(auth.api_key)}
    if isinstance(auth, BearerAuth):
        return {"type": auth.kind, "token": mask_secret(auth.token)}
    if isinstance(auth, BasicAuth):
        return {"type": auth.kind, "username": auth.username, "password": "***"}
    if isinstance(auth, OAuth2Auth):
        return {"type": auth.kind, "accessToken": mask_secret(auth.access_token)}
    assert_never(auth)
