"""MCP server setup for the OpenAPI client."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastmcp import FastMCP

from .config import Settings
from .errors import OpenAPIClientError, OperationNotFound, ParameterValidationFailed
from .index import summarize_operation
from .service import ApiClientService
from .session_store import CredentialRecord

logger = logging.getLogger(__name__)

SESSION_ACTIONS = ("list", "activate", "delete", "info")
AUTH_ACTIONS = ("set", "show", "clear")


def build_server(settings: Settings) -> tuple[FastMCP, object | None]:
    service = ApiClientService.from_settings(settings)

    mcp = FastMCP(settings.service_name, instructions=_instructions())
    for name, handler in _tool_handlers(service).items():
        mcp.tool(name=name)(handler)
        logger.info("Registered tool: %s", name)

    app = _get_http_app(mcp, settings)
    _attach_healthcheck(app)
    return mcp, app


def _tool_handlers(service: ApiClientService) -> Dict[str, Callable[..., Awaitable[Dict[str, Any]]]]:
    async def list_operations(
        api_source: str, tag: Optional[str] = None, method: Optional[str] = None
    ) -> Dict[str, Any]:
        """List the operations of an OpenAPI document, optionally filtered by tag or HTTP method."""

        async def run() -> Dict[str, Any]:
            document, operations = await service.list_operations(api_source, tag=tag, method=method)
            return {
                "source": document.source_identity,
                "title": document.title,
                "operations": [summarize_operation(op) for op in operations],
            }

        return await _guard(run)

    async def describe_api(api_source: str, operation_id: Optional[str] = None) -> Dict[str, Any]:
        """Describe an API, or one of its operations when operation_id is given."""
        return await _guard(lambda: service.describe(api_source, operation_id))

    async def call_api(
        api_source: str,
        operation_id: str,
        parameters: Optional[Dict[str, Any]] = None,
        auth_config: Optional[Dict[str, str]] = None,
        base_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Call an operation. Body goes in parameters['body'] or as body_<field> keys."""

        async def run() -> Dict[str, Any]:
            outcome = await service.call(
                api_source,
                operation_id,
                parameters=parameters,
                auth_config=auth_config,
                base_url=base_url,
            )
            payload = {
                "operation": summarize_operation(outcome.operation),
                "result": outcome.result.to_dict(),
            }
            if not outcome.result.success:
                return _format_error(outcome.result.error or "Call failed", payload)
            return payload

        return await _guard(run)

    async def manage_auth(
        api_source: str,
        action: str = "set",
        auth_type: Optional[str] = None,
        config: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Set, show or clear the persisted authentication for one API source."""

        async def run() -> Dict[str, Any]:
            if action == "set":
                record = service.configure_auth(api_source, auth_type or "", config or {})
                return {"source": record.api_source, "auth": service.show_auth(api_source)}
            if action == "show":
                return {"source": api_source, "auth": service.show_auth(api_source)}
            if action == "clear":
                return {"source": api_source, "cleared": service.clear_auth(api_source)}
            return _format_error(f"Unknown action: {action}", {"actions": list(AUTH_ACTIONS)})

        return await _guard(run)

    async def manage_session(action: str, session_id: Optional[str] = None) -> Dict[str, Any]:
        """List, activate, delete or inspect saved API sessions."""

        async def run() -> Dict[str, Any]:
            if action == "list":
                records, active = service.list_sessions()
                return {
                    "activeSessionId": active.id if active else None,
                    "sessions": [_session_view(r) for r in records],
                }
            if action not in SESSION_ACTIONS:
                return _format_error(f"Unknown action: {action}", {"actions": list(SESSION_ACTIONS)})
            if action == "info":
                return _session_view(service.session_info(session_id))
            if not session_id:
                return _format_error(f"session_id is required for action '{action}'")
            if action == "activate":
                return _session_view(service.activate_session(session_id))
            return {"deleted": _session_view(service.delete_session(session_id))}

        return await _guard(run)

    return {
        "list_operations": list_operations,
        "describe_api": describe_api,
        "call_api": call_api,
        "manage_auth": manage_auth,
        "manage_session": manage_session,
    }


async def _guard(run: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
    try:
        return await run()
    except ParameterValidationFailed as exc:
        return _format_error(str(exc), {"missing": [str(m) for m in exc.missing]})
    except OperationNotFound as exc:
        return _format_error(str(exc), {"available": exc.available})
    except OpenAPIClientError as exc:
        logger.warning("Tool call failed: %s", exc)
        return _format_error(str(exc))


def _session_view(record: CredentialRecord) -> Dict[str, Any]:
    view = record.model_dump(mode="json", by_alias=True, exclude={"auth_config"})
    view["authType"] = record.auth_config.type if record.auth_config else None
    return view


def _format_error(message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"is_error": True, "error": message}
    if details:
        payload.update(details)
    return payload


def _attach_healthcheck(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return

    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        from starlette.responses import JSONResponse

        return JSONResponse({"status": "ok"})

    app.add_route("/health", healthcheck, methods=["GET"])


def _instructions() -> str:
    return (
        "Universal OpenAPI client. Point api_source at an OpenAPI/Swagger file or URL, "
        "use list_operations and describe_api to explore it, and call_api to invoke operations."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.openapi_transport.lower()
    if transport in {"http"}:
        app = mcp.http_app(transport="http", stateless_http=True, json_response=True)
        _attach_cors(app)
        return app
    if transport in {"streamable-http", "streamablehttp"}:
        app = mcp.http_app(
            transport="streamable-http", stateless_http=True, json_response=True
        )
        _attach_cors(app)
        return app
    if transport in {"sse"}:
        app = mcp.http_app(transport="sse")
        _attach_cors(app)
        return app
    return None


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    from starlette.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
