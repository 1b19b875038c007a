"""
Pydantic schemas for blue tick verification records and sweep results.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.firestore.schemas import FirestoreDocument
from app.verification.timestamps import parse_timestamp


class VerificationRecord(BaseModel):
    """A document of the verified_users collection (document id = email)."""

    email: str
    verified: bool = False
    verified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None  # None = permanent
    expired_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: FirestoreDocument) -> "VerificationRecord":
        fields = document.fields
        return cls(
            email=fields.get("email") or document.id,
            verified=fields.get("verified") is True,
            verified_at=parse_timestamp(fields.get("verifiedAt")),
            expires_at=parse_timestamp(fields.get("expiresAt")),
            expired_at=parse_timestamp(fields.get("expiredAt")),
            revoked_at=parse_timestamp(fields.get("revokedAt")),
        )

    def is_active(self, now: datetime) -> bool:
        """Verified and not past its expiry (permanent records never lapse)."""
        if not self.verified:
            return False
        return self.expires_at is None or self.expires_at > now


class SweepResult(BaseModel):
    """Outcome of one verification expiry sweep."""

    success: bool
    cleaned: int = 0  # successful mutations
    total: int = 0  # records matched by the expiry query
    partial: bool = False  # ran, but cleaned < total
    message: Optional[str] = None
    error: Optional[str] = None
    sweep_id: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class GrantVerificationRequest(BaseModel):
    email: EmailStr
    duration_days: Optional[int] = Field(
        default=None,
        gt=0,
        le=3650,
        description="Verification lifetime in days; omit for a permanent blue tick",
    )


class VerificationStatusResponse(BaseModel):
    email: str
    exists: bool
    verified: bool
    active: bool
    verified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None

    @classmethod
    def from_record(
        cls, record: VerificationRecord, now: datetime
    ) -> "VerificationStatusResponse":
        return cls(
            email=record.email,
            exists=True,
            verified=record.verified,
            active=record.is_active(now),
            verified_at=record.verified_at,
            expires_at=record.expires_at,
            expired_at=record.expired_at,
            revoked_at=record.revoked_at,
        )

    @classmethod
    def missing(cls, email: str) -> "VerificationStatusResponse":
        return cls(email=email, exists=False, verified=False, active=False)
