"""
Blue tick verification service: status lookup, admin grant and revocation.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from app.core.config import settings
from app.firestore.client import DocumentStore
from app.firestore.exceptions import DocumentNotFoundError
from app.verification.schemas import VerificationRecord, VerificationStatusResponse
from app.verification.timestamps import format_timestamp, utcnow

logger = logging.getLogger(__name__)


class VerificationService:
    def __init__(
        self,
        store: DocumentStore,
        collection_id: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.collection_id = collection_id or settings.VERIFIED_USERS_COLLECTION
        self.clock = clock

    async def get_status(self, email: str) -> VerificationStatusResponse:
        """
        Look up a user's blue tick.

        ``active`` also honours expiresAt, so a lapsed record that the sweeper
        has not processed yet is already reported as inactive.
        """
        try:
            document = await self.store.get_document(self.collection_id, email)
        except DocumentNotFoundError:
            return VerificationStatusResponse.missing(email)

        record = VerificationRecord.from_document(document)
        return VerificationStatusResponse.from_record(record, self.clock())

    async def grant(
        self, email: str, duration_days: Optional[int] = None
    ) -> VerificationStatusResponse:
        """Write a fresh verification record, replacing any previous one."""
        now = self.clock()
        data = {
            "email": email,
            "verified": True,
            "verifiedAt": format_timestamp(now),
        }
        if duration_days:
            data["expiresAt"] = format_timestamp(now + timedelta(days=duration_days))

        document = await self.store.set_document(self.collection_id, email, data)
        logger.info(
            f"Granted verification to {email} "
            f"({'permanent' if not duration_days else f'{duration_days} days'})"
        )
        record = VerificationRecord.from_document(document)
        return VerificationStatusResponse.from_record(record, now)

    async def revoke(self, email: str) -> VerificationStatusResponse:
        """
        Revoke a verification without deleting history.

        Raises:
            DocumentNotFoundError: no record exists for the email
        """
        now = self.clock()
        name = self.store.document_name(self.collection_id, email)
        document = await self.store.update_document(
            name, {"verified": False, "revokedAt": format_timestamp(now)}
        )
        logger.info(f"Revoked verification for {email}")
        record = VerificationRecord.from_document(document)
        return VerificationStatusResponse.from_record(record, now)
