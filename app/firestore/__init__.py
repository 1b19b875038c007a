"""Firestore REST layer - service account auth, queries and partial updates."""

from app.firestore.client import DocumentStore, FirestoreClient, get_firestore_client
from app.firestore.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DocumentNotFoundError,
    DocumentStoreError,
    MutationError,
    QueryError,
)
from app.firestore.schemas import FirestoreDocument

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "FirestoreClient",
    "FirestoreDocument",
    "MutationError",
    "QueryError",
    "get_firestore_client",
]
