"""
Error taxonomy for the document store layer.

ConfigurationError, AuthenticationError and QueryError are fatal for a sweep.
MutationError is recovered per document by the sweeper.
"""

from typing import Optional


class DocumentStoreError(Exception):
    """Base class for every error raised by the Firestore layer."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConfigurationError(DocumentStoreError):
    """Service account credentials are missing or invalid."""


class AuthenticationError(DocumentStoreError):
    """The OAuth2 token exchange failed or returned no access token."""


class QueryError(DocumentStoreError):
    """A runQuery call failed or returned an unexpected payload."""


class MutationError(DocumentStoreError):
    """A document write (PATCH) failed."""


class DocumentNotFoundError(DocumentStoreError):
    """The addressed document does not exist."""
