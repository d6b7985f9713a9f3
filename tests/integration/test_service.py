"""End-to-end tests for ApiClientService against a mocked HTTP backend"""

import asyncio
import json

import httpx
import pytest

from openapi_client_mcp.config import Settings
from openapi_client_mcp.errors import (
    AuthConfigInvalid,
    BaseUrlMissing,
    DocumentUnavailable,
    OperationNotFound,
    ParameterValidationFailed,
    SessionNotFound,
)
from openapi_client_mcp.executors import RestExecutor
from openapi_client_mcp.openapi import OpenAPILoader
from openapi_client_mcp.service import ApiClientService
from openapi_client_mcp.session_store import CredentialStore

SPEC_URL = "https://docs.example.com/specs/petstore.json"


def _pet_backend(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/pets/404"):
        return httpx.Response(404, json={"message": "Pet not found"})
    if request.method == "POST":
        return httpx.Response(201, json=json.loads(request.content))
    return httpx.Response(200, json={"id": 1, "name": "Rex"})


@pytest.fixture
def backend(recording_transport):
    return recording_transport(_pet_backend)


@pytest.fixture
def make_service(session_file, backend):
    def _make(document_transport=None) -> ApiClientService:
        settings = Settings(openapi_session_file=session_file, openapi_user_agent="tests/1.0")
        return ApiClientService(
            settings=settings,
            loader=OpenAPILoader(transport=document_transport),
            store=CredentialStore.load(session_file),
            executor=RestExecutor(transport=backend),
        )

    return _make


class TestCall:
    """Tests for ApiClientService.call"""

    @pytest.mark.asyncio
    async def test_get_with_path_parameter(self, make_service, backend, petstore_v3, write_document) -> None:
        service = make_service()
        source = str(write_document(petstore_v3))

        outcome = await service.call(source, "showPetById", {"petId": 123})

        assert outcome.result.success is True
        assert outcome.result.status_code == 200
        assert outcome.result.data == {"id": 1, "name": "Rex"}
        assert outcome.operation.operation_id == "showPetById"
        sent = backend.requests[0]
        assert str(sent.url) == "https://petstore.example.com/v1/pets/123"
        assert sent.headers["user-agent"] == "tests/1.0"

    @pytest.mark.asyncio
    async def test_http_error_is_returned(self, make_service, petstore_v3, write_document) -> None:
        service = make_service()
        outcome = await service.call(str(write_document(petstore_v3)), "showPetById", {"petId": 404})

        assert outcome.result.success is False
        assert outcome.result.status_code == 404
        assert outcome.result.error == "HTTP 404: Not Found"
        assert outcome.result.data == {"message": "Pet not found"}

    @pytest.mark.asyncio
    async def test_body_from_prefixed_parameters(self, make_service, backend, petstore_v3, write_document) -> None:
        service = make_service()
        outcome = await service.call(
            str(write_document(petstore_v3)), "createPet", {"body_name": "Fluffy", "body_status": "available"}
        )

        assert outcome.result.status_code == 201
        assert json.loads(backend.requests[0].content) == {"name": "Fluffy", "status": "available"}

    @pytest.mark.asyncio
    async def test_validation_happens_before_io(self, make_service, backend, petstore_v3, write_document) -> None:
        service = make_service()
        with pytest.raises(ParameterValidationFailed) as excinfo:
            await service.call(str(write_document(petstore_v3)), "createUser", {})

        assert [str(m) for m in excinfo.value.missing] == ["username (body)", "email (body)"]
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_unknown_operation(self, make_service, backend, petstore_v3, write_document) -> None:
        service = make_service()
        with pytest.raises(OperationNotFound) as excinfo:
            await service.call(str(write_document(petstore_v3)), "nope", {})
        assert "listPets" in excinfo.value.available
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_missing_document(self, make_service, tmp_path) -> None:
        with pytest.raises(DocumentUnavailable):
            await make_service().call(str(tmp_path / "missing.json"), "listPets")

    @pytest.mark.asyncio
    async def test_base_url_override(self, make_service, backend, petstore_v3, write_document) -> None:
        service = make_service()
        await service.call(
            str(write_document(petstore_v3)), "listPets", {"limit": 2}, base_url="http://localhost:9000/"
        )
        assert str(backend.requests[0].url) == "http://localhost:9000/pets?limit=2"

    @pytest.mark.asyncio
    async def test_swagger_base_url(self, make_service, backend, petstore_v2, write_document) -> None:
        service = make_service()
        await service.call(str(write_document(petstore_v2, "legacy.json")), "get__pets", {"tags": ["a", "b"]})
        assert str(backend.requests[0].url) == "http://legacy.example.com/api/pets?tags=a%2Cb"

    @pytest.mark.asyncio
    async def test_no_base_url(self, make_service, petstore_v3, write_document) -> None:
        del petstore_v3["servers"]
        with pytest.raises(BaseUrlMissing):
            await make_service().call(str(write_document(petstore_v3)), "listPets")

    @pytest.mark.asyncio
    async def test_relative_server_on_remote_document(self, make_service, backend, petstore_v3, recording_transport) -> None:
        petstore_v3["servers"] = [{"url": "/v2"}]
        documents = recording_transport(lambda request: httpx.Response(200, json=petstore_v3))

        await make_service(documents).call(SPEC_URL, "listPets")
        assert str(backend.requests[0].url) == "https://docs.example.com/v2/pets"

    @pytest.mark.asyncio
    async def test_cancelled_call(self, make_service, petstore_v3, write_document) -> None:
        event = asyncio.Event()
        event.set()
        outcome = await make_service().call(
            str(write_document(petstore_v3)), "listPets", cancel_event=event
        )
        assert outcome.result.success is False
        assert outcome.result.error == "Request cancelled"


class TestAuth:
    """Tests for persisted and inline credentials"""

    @pytest.mark.asyncio
    async def test_persisted_auth_is_applied(self, make_service, backend, petstore_v3, write_document) -> None:
        source = str(write_document(petstore_v3))
        make_service().configure_auth(source, "apiKey", {"headerName": "X-API-Key", "apiKey": "secret"})

        # A fresh service sees the credentials on its first call.
        await make_service().call(source, "listPets")
        assert backend.requests[0].headers["x-api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_auth_overrides_header_parameter(self, make_service, backend, petstore_v3, write_document) -> None:
        source = str(write_document(petstore_v3))
        service = make_service()
        service.configure_auth(source, "bearer", {"token": "abc"})

        await service.call(source, "showPetById", {"petId": 1, "Authorization": "Custom x"})
        assert backend.requests[0].headers["authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_inline_auth_wins_for_one_call(self, make_service, backend, petstore_v3, write_document) -> None:
        source = str(write_document(petstore_v3))
        service = make_service()
        service.configure_auth(source, "bearer", {"token": "stored"})

        await service.call(source, "listPets", auth_config={"type": "bearer", "token": "inline"})
        await service.call(source, "listPets")

        assert backend.requests[0].headers["authorization"] == "Bearer inline"
        assert backend.requests[1].headers["authorization"] == "Bearer stored"

    @pytest.mark.asyncio
    async def test_credentials_are_isolated_per_source(
        self, make_service, backend, petstore_v3, petstore_v2, write_document
    ) -> None:
        first = str(write_document(petstore_v3, "first.json"))
        second = str(write_document(petstore_v2, "second.json"))
        service = make_service()
        service.configure_auth(first, "bearer", {"token": "abc"})

        await service.call(second, "get__pets")
        assert "authorization" not in backend.requests[0].headers

    def test_invalid_auth_config(self, make_service, petstore_v3, write_document) -> None:
        with pytest.raises(AuthConfigInvalid) as excinfo:
            make_service().configure_auth(str(write_document(petstore_v3)), "basic", {})
        assert excinfo.value.missing_fields == ["username", "password"]

    def test_show_and_clear_auth(self, make_service, petstore_v3, write_document) -> None:
        source = str(write_document(petstore_v3))
        service = make_service()
        service.configure_auth(source, "bearer", {"token": "abcdefgh"})

        assert service.show_auth(source) == {"type": "bearer", "token": "abcd***"}
        assert service.clear_auth(source) is True
        assert service.show_auth(source) is None


class TestDiscoveryAndSessions:
    """Tests for listing, describing and session management"""

    @pytest.mark.asyncio
    async def test_list_operations(self, make_service, petstore_v3, write_document) -> None:
        document, operations = await make_service().list_operations(
            str(write_document(petstore_v3)), tag="users"
        )
        assert document.title == "Petstore"
        assert [op.operation_id for op in operations] == ["createUser"]

    @pytest.mark.asyncio
    async def test_describe_api(self, make_service, petstore_v3, write_document) -> None:
        overview = await make_service().describe(str(write_document(petstore_v3)))
        assert overview["operationCount"] == 5
        assert overview["specVersion"] == "3.x"
        assert overview["authConfigured"] is False

    @pytest.mark.asyncio
    async def test_describe_operation(self, make_service, petstore_v3, write_document) -> None:
        described = await make_service().describe(str(write_document(petstore_v3)), "showPetById")
        assert described["exampleParameters"] == {"petId": 123}

    @pytest.mark.asyncio
    async def test_loading_records_a_session(self, make_service, petstore_v3, write_document) -> None:
        path = write_document(petstore_v3)
        service = make_service()
        await service.list_operations(str(path))

        records, active = service.list_sessions()
        assert [r.api_source for r in records] == [str(path.resolve())]
        assert active.name == "Petstore"
        assert active.base_url == "https://petstore.example.com/v1/"
        assert service.session_info() == active
        assert service.session_info(active.id) == active

    @pytest.mark.asyncio
    async def test_activate_and_delete(self, make_service, petstore_v3, petstore_v2, write_document) -> None:
        service = make_service()
        await service.list_operations(str(write_document(petstore_v3, "a.json")))
        await service.list_operations(str(write_document(petstore_v2, "b.json")))
        records, active = service.list_sessions()
        assert active.name == "Legacy Pets"

        petstore = next(r for r in records if r.name == "Petstore")
        assert service.activate_session(petstore.id).id == petstore.id
        service.delete_session(petstore.id)

        _, active = service.list_sessions()
        assert active.name == "Legacy Pets"
        with pytest.raises(SessionNotFound):
            service.session_info(petstore.id)
