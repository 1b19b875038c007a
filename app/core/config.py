from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: Optional[str] = None

    # Log Level
    LOG_LEVEL: (
        str  # Required: Must be set in environment (e.g., INFO, DEBUG, WARNING, ERROR)
    )

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Verification-Expiry-API"
    VERSION: str = "1.0.0"

    # CORS
    ALLOWED_ORIGINS: List[str] = []

    # Admin surface authentication (X-Admin-Token header)
    ADMIN_API_TOKEN: Optional[str] = None

    # Rate limiting for the cleanup endpoint (slowapi syntax)
    RATE_LIMIT_ENABLED: bool = True
    CLEANUP_RATE_LIMIT: str = "10/minute"

    # Sentry Configuration
    SENTRY_DSN: Optional[str] = None  # Sentry DSN for error tracking
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Firebase service account (provisioned out-of-band)
    # Either the raw JSON document or a path to the downloaded key file
    FIREBASE_SERVICE_ACCOUNT: Optional[str] = None
    FIREBASE_SERVICE_ACCOUNT_FILE: Optional[str] = None

    # Google OAuth2 token endpoint (JWT-bearer grant)
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    SERVICE_ACCOUNT_TOKEN_LIFETIME_SECONDS: int = 3600  # Max 1 hour
    SERVICE_ACCOUNT_TOKEN_REFRESH_THRESHOLD_SECONDS: int = (
        60  # Refresh cached token N seconds before expiry
    )

    # Firestore REST API
    FIRESTORE_API_BASE_URL: str = "https://firestore.googleapis.com/v1"
    FIRESTORE_DATABASE_ID: str = "(default)"
    FIRESTORE_SCOPE: str = "https://www.googleapis.com/auth/datastore"

    # Verification sweep
    VERIFIED_USERS_COLLECTION: str = "verified_users"
    SWEEP_MAX_CONCURRENCY: int = (
        5  # Parallel PATCH calls (keeps us under the per-second write quota)
    )
    SWEEP_SCHEDULER_ENABLED: bool = False  # Run the daily sweep in-process
    SWEEP_HOUR_UTC: int = 0  # Hour in UTC for the daily sweep
    SWEEP_MINUTE_UTC: int = 15  # Minute in UTC for the daily sweep

    # HTTP Settings
    HTTP_REQUEST_TIMEOUT_SECONDS: float = 30.0  # Default timeout for HTTP requests

    # External API Retry Configuration (Google token endpoint, Firestore)
    # Uses tenacity library for retry logic with exponential backoff
    EXTERNAL_API_RETRY_ATTEMPTS: int = (
        4  # Total attempts (3 retries + 1 initial = 4 total)
    )
    EXTERNAL_API_RETRY_MIN_WAIT: float = (
        0.5  # Minimum wait time between retries (seconds)
    )
    EXTERNAL_API_RETRY_MAX_WAIT: float = (
        2.0  # Maximum wait time between retries (seconds)
    )
    EXTERNAL_API_RETRY_MULTIPLIER: float = 1.0  # Exponential backoff multiplier

    # Logging Configuration
    LOGGING_FRAME_DEPTH: int = (
        6  # Frame depth for finding logging call origin in stack trace
    )

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    # --------- Properties ---------
    @property
    def is_local(self) -> bool:
        """
        Check if running in local development environment.

        Supported values:
        - "local" or "local_dev" → True (local development)
        - "dev", "staging", "prod", or anything else → False (deployed)
        """
        if not self.ENVIRONMENT:
            return False
        env = self.ENVIRONMENT.lower()
        return env in ["local", "local_dev"]


settings = Settings()
