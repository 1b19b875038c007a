"""
Verification Expiry Sweeper.

Soft-expires blue tick verifications whose expiresAt has passed: every record
with expiresAt < now and verified == true gets verified=false and
expiredAt=<sweep time>. Nothing is deleted and no other field is touched.

The sweeper is stateless and idempotent: a second run finds nothing because
expired records no longer match verified == true.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.core.config import settings
from app.core.logging_config import clear_sweep_id, set_sweep_id
from app.core.sentry import clear_sentry_context, set_sentry_context
from app.firestore.client import DocumentStore
from app.firestore.exceptions import DocumentStoreError
from app.firestore.query import FieldOperator, and_filter, field_filter
from app.firestore.schemas import FirestoreDocument
from app.verification.schemas import SweepResult
from app.verification.timestamps import format_timestamp, truncate_to_millis, utcnow

logger = logging.getLogger(__name__)


def build_expired_filter(now: datetime) -> Dict[str, Any]:
    """
    Server-side filter: expiresAt < now AND verified == true.

    Firestore only compares values of the same type, so records whose
    expiresAt is null or absent (permanent) can never match.
    """
    return and_filter(
        field_filter("expiresAt", FieldOperator.LESS_THAN, format_timestamp(now)),
        field_filter("verified", FieldOperator.EQUAL, True),
    )


class VerificationExpirySweeper:
    """
    Reconciles the verified-users collection against expiry timestamps.

    The document store is injected, which keeps the sweeper free of global
    state and lets tests run it against an in-memory store.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection_id: Optional[str] = None,
        max_concurrency: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.collection_id = collection_id or settings.VERIFIED_USERS_COLLECTION
        self.max_concurrency = max(
            1,
            max_concurrency
            if max_concurrency is not None
            else settings.SWEEP_MAX_CONCURRENCY,
        )
        self.clock = clock

    async def run(self) -> SweepResult:
        """
        Run one sweep.

        Never raises: configuration, authentication and query failures come
        back as SweepResult(success=False, error=...). Per-record update
        failures are logged and only lower ``cleaned``.
        """
        sweep_id = str(uuid.uuid4())
        set_sweep_id(sweep_id)
        set_sentry_context(sweep_id=sweep_id)
        # Same precision as the stored expiredAt
        started_at = truncate_to_millis(self.clock())

        try:
            logger.info(
                f"Starting cleanup of expired verifications in {self.collection_id}"
            )

            await self.store.authenticate()
            logger.info("Successfully obtained document store access token")

            expired = await self._find_expired(started_at)
            total = len(expired)
            logger.info(f"Found {total} expired verifications")

            if not expired:
                return SweepResult(
                    success=True,
                    message="No expired verifications found",
                    sweep_id=sweep_id,
                    started_at=started_at,
                    finished_at=self.clock(),
                )

            outcomes = await self._expire_all(expired, started_at)
            cleaned = sum(1 for ok in outcomes if ok)

            if cleaned < total:
                logger.warning(
                    f"Cleanup complete with failures: {cleaned}/{total} verifications expired"
                )
            else:
                logger.info(
                    f"Cleanup complete: {cleaned}/{total} verifications expired"
                )

            return SweepResult(
                success=True,
                cleaned=cleaned,
                total=total,
                partial=cleaned < total,
                message=f"Cleaned up {cleaned} expired verifications",
                sweep_id=sweep_id,
                started_at=started_at,
                finished_at=self.clock(),
            )

        except DocumentStoreError as e:
            logger.error(f"Verification cleanup failed: {e.message}")
            return self._failure(sweep_id, started_at, e.message)
        except Exception as e:
            logger.exception(f"Unexpected error in verification cleanup: {e}")
            return self._failure(sweep_id, started_at, str(e) or "Unknown error")
        finally:
            clear_sweep_id()
            clear_sentry_context(request_id=False)

    async def _find_expired(self, now: datetime) -> List[FirestoreDocument]:
        return await self.store.run_query(
            self.collection_id, where=build_expired_filter(now)
        )

    async def _expire_all(
        self, documents: List[FirestoreDocument], expired_at: datetime
    ) -> List[bool]:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        fields = {"verified": False, "expiredAt": format_timestamp(expired_at)}

        async def expire_one(document: FirestoreDocument) -> bool:
            async with semaphore:
                return await self._expire(document, fields)

        return await asyncio.gather(*(expire_one(doc) for doc in documents))

    async def _expire(self, document: FirestoreDocument, fields: Dict[str, Any]) -> bool:
        try:
            await self.store.update_document(document.name, dict(fields))
        except DocumentStoreError as e:
            logger.error(f"Failed to expire verification {document.id}: {e.message}")
            return False
        except Exception as e:
            logger.exception(f"Error expiring verification {document.id}: {e}")
            return False

        logger.info(f"Expired verification: {document.id}")
        return True

    def _failure(self, sweep_id: str, started_at: datetime, error: str) -> SweepResult:
        return SweepResult(
            success=False,
            error=error,
            sweep_id=sweep_id,
            started_at=started_at,
            finished_at=self.clock(),
        )
