"""
Async client for the Firestore REST API (v1).

Covers the calls the verification service needs: structured queries,
single-document reads, full writes and masked partial updates. Every call
authenticates with a bearer token from ServiceAccountTokenProvider and goes
through the shared tenacity retry policy.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.firestore.auth import ServiceAccountTokenProvider
from app.firestore.credentials import ServiceAccountCredentials
from app.firestore.exceptions import (
    DocumentNotFoundError,
    DocumentStoreError,
    MutationError,
    QueryError,
)
from app.firestore.query import structured_query
from app.firestore.schemas import FirestoreDocument
from app.firestore.values import encode_fields
from app.utils.retry_decorator import retry_external_api

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """What the verification service needs from a document database."""

    async def authenticate(self) -> None: ...

    async def run_query(
        self, collection_id: str, where: Optional[Dict[str, Any]] = None
    ) -> List[FirestoreDocument]: ...

    async def get_document(
        self, collection_id: str, document_id: str
    ) -> FirestoreDocument: ...

    async def set_document(
        self, collection_id: str, document_id: str, data: Dict[str, Any]
    ) -> FirestoreDocument: ...

    async def update_document(
        self, document_name: str, data: Dict[str, Any], must_exist: bool = True
    ) -> FirestoreDocument: ...

    def document_name(self, collection_id: str, document_id: str) -> str: ...


class FirestoreClient:
    def __init__(
        self,
        credentials: Optional[ServiceAccountCredentials] = None,
        token_provider: Optional[ServiceAccountTokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            credentials: Service account; loaded from settings on first use when omitted
            token_provider: Overrides the provider built from credentials
            transport: httpx transport shared by token and API calls (tests use MockTransport)
        """
        self._credentials = credentials
        self._token_provider = token_provider
        self._transport = transport
        self.API_BASE = settings.FIRESTORE_API_BASE_URL.rstrip("/")
        self.DATABASE_ID = settings.FIRESTORE_DATABASE_ID

    # --------- Credentials / auth ---------

    @property
    def credentials(self) -> ServiceAccountCredentials:
        if self._credentials is None:
            self._credentials = ServiceAccountCredentials.from_settings()
        return self._credentials

    @property
    def project_id(self) -> str:
        return self.credentials.project_id

    @property
    def token_provider(self) -> ServiceAccountTokenProvider:
        if self._token_provider is None:
            self._token_provider = ServiceAccountTokenProvider(
                self.credentials, transport=self._transport
            )
        return self._token_provider

    async def authenticate(self) -> None:
        """
        Load credentials and mint a fresh access token.

        Raises ConfigurationError before any network call when credentials are
        missing, AuthenticationError when the token exchange fails.
        """
        await self.token_provider.get_token(force_refresh=True)

    async def _headers(self) -> Dict[str, str]:
        token = await self.token_provider.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    # --------- Paths ---------

    @property
    def database_path(self) -> str:
        return f"projects/{self.project_id}/databases/{self.DATABASE_ID}"

    @property
    def documents_path(self) -> str:
        return f"{self.database_path}/documents"

    def document_name(self, collection_id: str, document_id: str) -> str:
        return f"{self.documents_path}/{collection_id}/{quote(document_id, safe='@')}"

    def _url(self, path: str) -> str:
        return f"{self.API_BASE}/{path}"

    # --------- Requests ---------

    async def _request(
        self,
        method: str,
        path: str,
        service_name: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[List[tuple]] = None,
    ) -> Any:
        headers = await self._headers()
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=settings.HTTP_REQUEST_TIMEOUT_SECONDS,
        ) as client:
            async for attempt in retry_external_api(service_name):
                with attempt:
                    response = await client.request(
                        method, self._url(path), headers=headers, json=json, params=params
                    )
                    response.raise_for_status()
                    return response.json()

    async def run_query(
        self, collection_id: str, where: Optional[Dict[str, Any]] = None
    ) -> List[FirestoreDocument]:
        """
        Run a structured query against one collection and return matched documents.

        Raises:
            QueryError: non-2xx response or a payload that is not a result list
        """
        body = structured_query(collection_id, where=where)
        try:
            data = await self._request(
                "POST", f"{self.documents_path}:runQuery", "Firestore", json=body
            )
        except httpx.HTTPStatusError as e:
            raise QueryError(
                f"Query on {collection_id} failed: {_error_message(e.response)}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise QueryError(f"Query on {collection_id} failed: {e}")
        except ValueError:
            raise QueryError(f"Query on {collection_id} returned a non-JSON response")

        if not isinstance(data, list):
            logger.error(f"Unexpected runQuery response: {data}")
            raise QueryError(f"Query on {collection_id} returned an unexpected payload")

        documents = []
        for item in data:
            if isinstance(item, dict) and item.get("document"):
                documents.append(FirestoreDocument.from_api(item["document"]))
        logger.debug(f"Query on {collection_id} matched {len(documents)} documents")
        return documents

    async def get_document(
        self, collection_id: str, document_id: str
    ) -> FirestoreDocument:
        name = self.document_name(collection_id, document_id)
        try:
            data = await self._request("GET", name, "Firestore")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise DocumentNotFoundError(
                    f"Document {collection_id}/{document_id} not found", status_code=404
                )
            raise DocumentStoreError(
                f"Read of {collection_id}/{document_id} failed: {_error_message(e.response)}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise DocumentStoreError(f"Read of {collection_id}/{document_id} failed: {e}")
        except ValueError:
            raise DocumentStoreError(
                f"Read of {collection_id}/{document_id} returned a non-JSON response"
            )
        return FirestoreDocument.from_api(data)

    async def set_document(
        self, collection_id: str, document_id: str, data: Dict[str, Any]
    ) -> FirestoreDocument:
        """Create or fully overwrite a document (no update mask)."""
        name = self.document_name(collection_id, document_id)
        return await self._patch(name, data, params=None)

    async def update_document(
        self, document_name: str, data: Dict[str, Any], must_exist: bool = True
    ) -> FirestoreDocument:
        """
        Partially update a document: only the fields in ``data`` are written.

        Args:
            document_name: Full resource name (as returned in FirestoreDocument.name)
            data: Field values to set
            must_exist: Fail with DocumentNotFoundError instead of creating the document
        """
        params = [("updateMask.fieldPaths", field_path) for field_path in data]
        if must_exist:
            params.append(("currentDocument.exists", "true"))
        return await self._patch(document_name, data, params=params)

    async def _patch(
        self, document_name: str, data: Dict[str, Any], params: Optional[List[tuple]]
    ) -> FirestoreDocument:
        body = {"fields": encode_fields(data)}
        try:
            payload = await self._request(
                "PATCH", document_name, "Firestore", json=body, params=params
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise DocumentNotFoundError(
                    f"Document {document_name} not found", status_code=404
                )
            raise MutationError(
                f"Update of {document_name} failed: {_error_message(e.response)}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise MutationError(f"Update of {document_name} failed: {e}")
        except ValueError:
            raise MutationError(f"Update of {document_name} returned a non-JSON response")
        return FirestoreDocument.from_api(payload)


def _error_message(response: httpx.Response) -> str:
    """Extract google.rpc.Status message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, list) and body:
        body = body[0]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = body["error"]
        return f"HTTP {response.status_code} {error.get('status', '')}: {error.get('message', '')}".strip()
    return f"HTTP {response.status_code}"


_client: Optional[FirestoreClient] = None


def get_firestore_client() -> FirestoreClient:
    """FastAPI dependency returning the process-wide client (credentials load lazily)."""
    global _client
    if _client is None:
        _client = FirestoreClient()
    return _client
