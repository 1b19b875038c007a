"""
Pytest configuration and shared fixtures for the verification service tests.
"""

import os

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("LOG_LEVEL", "INFO")
# Note: This is a test-only dummy value, not a real secret
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SWEEP_SCHEDULER_ENABLED"] = "false"
# No backoff between retries in tests
os.environ["EXTERNAL_API_RETRY_MIN_WAIT"] = "0"
os.environ["EXTERNAL_API_RETRY_MAX_WAIT"] = "0"
os.environ.pop("FIREBASE_SERVICE_ACCOUNT", None)
os.environ.pop("FIREBASE_SERVICE_ACCOUNT_FILE", None)
os.environ.pop("SENTRY_DSN", None)

import operator
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from app.firestore.credentials import ServiceAccountCredentials
from app.firestore.exceptions import (
    DocumentNotFoundError,
    DocumentStoreError,
    MutationError,
)
from app.firestore.schemas import FirestoreDocument
from app.firestore.values import decode_value


TEST_PROJECT_ID = "test-project"
TEST_COLLECTION = "verified_users"

# Sweep time used by most tests
FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

_OPERATORS = {
    "LESS_THAN": operator.lt,
    "EQUAL": operator.eq,
}

_MISSING = object()


class FakeDocumentStore:
    """
    In-memory DocumentStore that evaluates structured query filters the way
    Firestore does: missing fields never match and values are only compared
    with values of the same type (so a null expiresAt never matches a string).
    """

    def __init__(
        self,
        auth_error: Optional[DocumentStoreError] = None,
        query_error: Optional[DocumentStoreError] = None,
        fail_names: Optional[List[str]] = None,
    ):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.auth_error = auth_error
        self.query_error = query_error
        self.fail_names = set(fail_names or [])
        self.calls: List[tuple] = []

    # --------- Helpers for tests ---------

    def add(self, document_id: str, collection_id: str = TEST_COLLECTION, **fields):
        name = self.document_name(collection_id, document_id)
        self.documents[name] = dict(fields)
        return name

    def fields_of(self, document_id: str, collection_id: str = TEST_COLLECTION):
        return self.documents[self.document_name(collection_id, document_id)]

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    def _document(self, name: str) -> FirestoreDocument:
        return FirestoreDocument(name=name, fields=dict(self.documents[name]))

    # --------- DocumentStore ---------

    def document_name(self, collection_id: str, document_id: str) -> str:
        return (
            f"projects/{TEST_PROJECT_ID}/databases/(default)/documents/"
            f"{collection_id}/{document_id}"
        )

    async def authenticate(self) -> None:
        self.calls.append(("authenticate",))
        if self.auth_error:
            raise self.auth_error

    async def run_query(self, collection_id, where=None):
        self.calls.append(("run_query", collection_id, where))
        if self.query_error:
            raise self.query_error

        prefix = self.document_name(collection_id, "")
        return [
            self._document(name)
            for name, fields in self.documents.items()
            if name.startswith(prefix) and _matches(fields, where)
        ]

    async def get_document(self, collection_id, document_id):
        self.calls.append(("get_document", collection_id, document_id))
        name = self.document_name(collection_id, document_id)
        if name not in self.documents:
            raise DocumentNotFoundError(f"Document {name} not found", status_code=404)
        return self._document(name)

    async def set_document(self, collection_id, document_id, data):
        name = self.document_name(collection_id, document_id)
        self.calls.append(("set_document", name, dict(data)))
        if name in self.fail_names:
            raise MutationError(f"Update of {name} failed: HTTP 503", status_code=503)
        self.documents[name] = dict(data)
        return self._document(name)

    async def update_document(self, document_name, data, must_exist=True):
        self.calls.append(("update_document", document_name, dict(data)))
        if document_name in self.fail_names:
            raise MutationError(
                f"Update of {document_name} failed: HTTP 503", status_code=503
            )
        if document_name not in self.documents:
            if must_exist:
                raise DocumentNotFoundError(
                    f"Document {document_name} not found", status_code=404
                )
            self.documents[document_name] = {}
        self.documents[document_name].update(data)
        return self._document(document_name)


def _flatten(where: Dict[str, Any]) -> List[Dict[str, Any]]:
    if "compositeFilter" in where:
        assert where["compositeFilter"]["op"] == "AND"
        flat = []
        for sub in where["compositeFilter"]["filters"]:
            flat.extend(_flatten(sub))
        return flat
    return [where["fieldFilter"]]


def _matches(fields: Dict[str, Any], where: Optional[Dict[str, Any]]) -> bool:
    if not where:
        return True
    for condition in _flatten(where):
        actual = fields.get(condition["field"]["fieldPath"], _MISSING)
        expected = decode_value(condition["value"])
        if actual is _MISSING or type(actual) is not type(expected):
            return False
        if not _OPERATORS[condition["op"]](actual, expected):
            return False
    return True


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def fake_store():
    return FakeDocumentStore()


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key) -> str:
    return (
        rsa_private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )


@pytest.fixture
def service_account_info(private_key_pem) -> Dict[str, Any]:
    """A service account key file as downloaded from the Firebase console."""
    return {
        "type": "service_account",
        "project_id": TEST_PROJECT_ID,
        "private_key_id": "key-123",
        "private_key": private_key_pem,
        "client_email": f"sweeper@{TEST_PROJECT_ID}.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": "https://oauth2.googleapis.com/token",
    }


@pytest.fixture
def service_account(service_account_info) -> ServiceAccountCredentials:
    return ServiceAccountCredentials.model_validate(service_account_info)
