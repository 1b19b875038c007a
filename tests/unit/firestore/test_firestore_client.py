"""
Unit tests for the Firestore REST client.

Requests go to an httpx.MockTransport; the token provider is stubbed so only
Firestore API calls are observed.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.core.config import settings
from app.firestore.client import FirestoreClient
from app.firestore.exceptions import (
    ConfigurationError,
    DocumentNotFoundError,
    DocumentStoreError,
    MutationError,
    QueryError,
)
from app.firestore.query import FieldOperator, field_filter

DOCUMENTS = "projects/test-project/databases/(default)/documents"


class FirestoreApi:
    """Records requests and answers them with a handler function."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def api_document(document_id, **fields):
    return {
        "name": f"{DOCUMENTS}/verified_users/{document_id}",
        "fields": fields,
        "createTime": "2024-01-01T00:00:00.000000Z",
        "updateTime": "2024-01-02T00:00:00.000000Z",
    }


def api_error(status_code, status, message):
    return httpx.Response(
        status_code,
        json={"error": {"code": status_code, "status": status, "message": message}},
    )


@pytest.fixture
def token_provider():
    provider = MagicMock()
    provider.get_token = AsyncMock(return_value="test-access-token")
    return provider


def make_client(service_account, token_provider, handler):
    api = FirestoreApi(handler)
    client = FirestoreClient(
        credentials=service_account,
        token_provider=token_provider,
        transport=httpx.MockTransport(api),
    )
    return client, api


class TestPaths:
    def test_document_name(self, service_account, token_provider):
        client = FirestoreClient(credentials=service_account, token_provider=token_provider)

        assert (
            client.document_name("verified_users", "alice@example.com")
            == f"{DOCUMENTS}/verified_users/alice@example.com"
        )

    def test_document_id_is_escaped(self, service_account, token_provider):
        client = FirestoreClient(credentials=service_account, token_provider=token_provider)

        assert client.document_name("verified_users", "a+b/c@x.io").endswith(
            "/verified_users/a%2Bb%2Fc@x.io"
        )

    def test_missing_credentials_raise_configuration_error(self, monkeypatch):
        monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT", None)
        monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT_FILE", None)
        client = FirestoreClient()

        with pytest.raises(ConfigurationError):
            client.document_name("verified_users", "alice@example.com")


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_forces_a_fresh_token(self, service_account, token_provider):
        client = FirestoreClient(credentials=service_account, token_provider=token_provider)

        await client.authenticate()

        token_provider.get_token.assert_awaited_once_with(force_refresh=True)


class TestRunQuery:
    @pytest.mark.asyncio
    async def test_posts_structured_query(self, service_account, token_provider):
        client, api = make_client(
            service_account,
            token_provider,
            lambda request: httpx.Response(
                200,
                json=[
                    {
                        "document": api_document(
                            "alice@example.com",
                            verified={"booleanValue": True},
                            expiresAt={"stringValue": "2024-01-01T00:00:00.000Z"},
                        ),
                        "readTime": "2024-06-01T12:00:00.000000Z",
                    }
                ],
            ),
        )
        where = field_filter("verified", FieldOperator.EQUAL, True)

        documents = await client.run_query("verified_users", where=where)

        request = api.requests[0]
        assert request.method == "POST"
        assert request.url.path.endswith("/documents:runQuery")
        assert request.headers["Authorization"] == "Bearer test-access-token"
        assert json.loads(request.content) == {
            "structuredQuery": {
                "from": [{"collectionId": "verified_users"}],
                "where": where,
            }
        }
        assert len(documents) == 1
        assert documents[0].id == "alice@example.com"
        assert documents[0].fields == {
            "verified": True,
            "expiresAt": "2024-01-01T00:00:00.000Z",
        }

    @pytest.mark.asyncio
    async def test_no_matches(self, service_account, token_provider):
        # An empty result is a single entry with only readTime
        client, _ = make_client(
            service_account,
            token_provider,
            lambda request: httpx.Response(
                200, json=[{"readTime": "2024-06-01T12:00:00.000000Z"}]
            ),
        )

        assert await client.run_query("verified_users") == []

    @pytest.mark.asyncio
    async def test_permission_denied(self, service_account, token_provider):
        client, api = make_client(
            service_account,
            token_provider,
            lambda request: api_error(403, "PERMISSION_DENIED", "Missing permissions"),
        )

        with pytest.raises(QueryError) as exc_info:
            await client.run_query("verified_users")

        assert exc_info.value.status_code == 403
        assert "PERMISSION_DENIED" in exc_info.value.message
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_server_errors_are_retried_then_fail(
        self, service_account, token_provider
    ):
        client, api = make_client(
            service_account,
            token_provider,
            lambda request: api_error(503, "UNAVAILABLE", "Try again"),
        )

        with pytest.raises(QueryError):
            await client.run_query("verified_users")

        assert len(api.requests) == settings.EXTERNAL_API_RETRY_ATTEMPTS

    @pytest.mark.asyncio
    async def test_unexpected_payload(self, service_account, token_provider):
        client, _ = make_client(
            service_account,
            token_provider,
            lambda request: httpx.Response(200, json={"unexpected": True}),
        )

        with pytest.raises(QueryError):
            await client.run_query("verified_users")


class TestGetDocument:
    @pytest.mark.asyncio
    async def test_reads_document(self, service_account, token_provider):
        client, api = make_client(
            service_account,
            token_provider,
            lambda request: httpx.Response(
                200,
                json=api_document("alice@example.com", verified={"booleanValue": True}),
            ),
        )

        document = await client.get_document("verified_users", "alice@example.com")

        assert api.requests[0].method == "GET"
        assert document.fields == {"verified": True}
        assert document.update_time == "2024-01-02T00:00:00.000000Z"

    @pytest.mark.asyncio
    async def test_not_found(self, service_account, token_provider):
        client, _ = make_client(
            service_account,
            token_provider,
            lambda request: api_error(404, "NOT_FOUND", "Document not found"),
        )

        with pytest.raises(DocumentNotFoundError):
            await client.get_document("verified_users", "nobody@example.com")

    @pytest.mark.asyncio
    async def test_other_failures(self, service_account, token_provider):
        client, _ = make_client(
            service_account,
            token_provider,
            lambda request: api_error(401, "UNAUTHENTICATED", "Bad token"),
        )

        with pytest.raises(DocumentStoreError) as exc_info:
            await client.get_document("verified_users", "alice@example.com")

        assert not isinstance(exc_info.value, DocumentNotFoundError)
        assert exc_info.value.status_code == 401


class TestUpdateDocument:
    @pytest.mark.asyncio
    async def test_patch_with_field_mask_and_precondition(
        self, service_account, token_provider
    ):
        name = f"{DOCUMENTS}/verified_users/alice@example.com"
        client, api = make_client(
            service_account,
            token_provider,
            lambda request: httpx.Response(
                200,
                json=api_document(
                    "alice@example.com",
                    email={"stringValue": "alice@example.com"},
                    verified={"booleanValue": False},
                    expiredAt={"stringValue": "2024-06-01T12:00:00.000Z"},
                ),
            ),
        )

        document = await client.update_document(
            name, {"verified": False, "expiredAt": "2024-06-01T12:00:00.000Z"}
        )

        request = api.requests[0]
        assert request.method == "PATCH"
        assert request.url.path.endswith("/verified_users/alice@example.com")
        assert request.url.params.get_list("updateMask.fieldPaths") == [
            "verified",
            "expiredAt",
        ]
        assert request.url.params["currentDocument.exists"] == "true"
        assert json.loads(request.content) == {
            "fields": {
                "verified": {"booleanValue": False},
                "expiredAt": {"stringValue": "2024-06-01T12:00:00.000Z"},
            }
        }
        assert document.fields["email"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_without_precondition(self, service_account, token_provider):
        client, api = make_client(
            service_account,
            token_provider,
            lambda request: httpx.Response(200, json=api_document("bob@example.com")),
        )

        await client.update_document(
            f"{DOCUMENTS}/verified_users/bob@example.com",
            {"verified": False},
            must_exist=False,
        )

        assert "currentDocument.exists" not in api.requests[0].url.params

    @pytest.mark.asyncio
    async def test_deleted_document(self, service_account, token_provider):
        client, _ = make_client(
            service_account,
            token_provider,
            lambda request: api_error(404, "NOT_FOUND", "No document to update"),
        )

        with pytest.raises(DocumentNotFoundError):
            await client.update_document(
                f"{DOCUMENTS}/verified_users/gone@example.com", {"verified": False}
            )

    @pytest.mark.asyncio
    async def test_rejected_write(self, service_account, token_provider):
        client, _ = make_client(
            service_account,
            token_provider,
            lambda request: api_error(403, "PERMISSION_DENIED", "Rules denied write"),
        )

        with pytest.raises(MutationError) as exc_info:
            await client.update_document(
                f"{DOCUMENTS}/verified_users/alice@example.com", {"verified": False}
            )

        assert exc_info.value.status_code == 403


class TestSetDocument:
    @pytest.mark.asyncio
    async def test_full_write_has_no_mask(self, service_account, token_provider):
        client, api = make_client(
            service_account,
            token_provider,
            lambda request: httpx.Response(
                200,
                json=api_document(
                    "carol@example.com",
                    email={"stringValue": "carol@example.com"},
                    verified={"booleanValue": True},
                ),
            ),
        )

        await client.set_document(
            "verified_users",
            "carol@example.com",
            {"email": "carol@example.com", "verified": True},
        )

        request = api.requests[0]
        assert request.method == "PATCH"
        assert "updateMask.fieldPaths" not in request.url.params
        assert json.loads(request.content)["fields"]["verified"] == {
            "booleanValue": True
        }
