"""
Service account credentials for the Firestore REST API.

Credentials come from FIREBASE_SERVICE_ACCOUNT (the JSON key as a string) or
FIREBASE_SERVICE_ACCOUNT_FILE (path to the downloaded key). Parsing never
touches the network, so a bad key fails fast with ConfigurationError.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError, field_validator

from app.core.config import settings
from app.firestore.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ServiceAccountCredentials(BaseModel):
    project_id: str
    client_email: str
    private_key: str
    private_key_id: Optional[str] = None
    token_uri: Optional[str] = None

    @field_validator("project_id", "client_email", "private_key")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("private_key")
    @classmethod
    def _normalize_private_key(cls, value: str) -> str:
        # Keys pasted into env vars usually carry literal "\n" sequences
        key = value.replace("\\n", "\n").strip()
        if not key.startswith("-----BEGIN"):
            raise ValueError("must be a PEM encoded private key")
        return key + "\n"

    @classmethod
    def from_json(cls, raw: str) -> "ServiceAccountCredentials":
        """Parse a service account JSON document."""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid service account JSON: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError("Invalid service account: expected a JSON object")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            missing = sorted(
                {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
            )
            raise ConfigurationError(
                f"Invalid service account: missing or invalid {', '.join(missing)}"
            )

    @classmethod
    def from_file(cls, path: str) -> "ServiceAccountCredentials":
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read service account file {path}: {e}")
        return cls.from_json(raw)

    @classmethod
    def from_settings(cls) -> "ServiceAccountCredentials":
        """
        Load credentials from settings.

        The inline JSON wins over the file path when both are set.

        Raises:
            ConfigurationError: when neither is configured or the key is invalid
        """
        if settings.FIREBASE_SERVICE_ACCOUNT:
            credentials = cls.from_json(settings.FIREBASE_SERVICE_ACCOUNT)
        elif settings.FIREBASE_SERVICE_ACCOUNT_FILE:
            credentials = cls.from_file(settings.FIREBASE_SERVICE_ACCOUNT_FILE)
        else:
            raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT not configured")

        logger.debug(
            f"Loaded service account {credentials.client_email} "
            f"for project {credentials.project_id}"
        )
        return credentials
