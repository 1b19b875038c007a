"""
Verification API routes.

- POST /verifications/cleanup: run the expiry sweep (admin button or cron)
- POST /verifications: grant a blue tick
- GET /verifications/{email}: verification status
- POST /verifications/{email}/revoke: revoke a blue tick

All routes require the X-Admin-Token header.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings
from app.core.security import verify_admin_token
from app.firestore import (
    ConfigurationError,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    get_firestore_client,
)
from app.verification.schemas import (
    GrantVerificationRequest,
    SweepResult,
    VerificationStatusResponse,
)
from app.verification.service import VerificationService
from app.verification.sweeper import VerificationExpirySweeper

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verifications", tags=["verifications"])

# Rate limiter for the cleanup endpoint (the admin button can be spammed)
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def _raise_store_error(e: DocumentStoreError):
    if isinstance(e, DocumentNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, ConfigurationError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message
        )
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.post("/cleanup", response_model=SweepResult)
@limiter.limit(settings.CLEANUP_RATE_LIMIT)
async def cleanup_expired_verifications(
    request: Request,
    store: DocumentStore = Depends(get_firestore_client),
    _: bool = Depends(verify_admin_token),
):
    """
    Expire every verification whose expiresAt has passed.

    Returns the sweep result. Fatal failures (credentials, token exchange,
    query) return HTTP 500 with the same body and success=false.
    """
    logger.info("Verification cleanup triggered via API")

    result = await VerificationExpirySweeper(store).run()

    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.model_dump(mode="json"),
        )
    return result


@router.post(
    "",
    response_model=VerificationStatusResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_verification(
    payload: GrantVerificationRequest,
    store: DocumentStore = Depends(get_firestore_client),
    _: bool = Depends(verify_admin_token),
):
    """Grant a blue tick, optionally limited to ``duration_days``."""
    try:
        return await VerificationService(store).grant(
            payload.email, payload.duration_days
        )
    except DocumentStoreError as e:
        logger.error(f"Failed to grant verification to {payload.email}: {e.message}")
        _raise_store_error(e)


@router.get("/{email}", response_model=VerificationStatusResponse)
async def get_verification_status(
    email: str,
    store: DocumentStore = Depends(get_firestore_client),
    _: bool = Depends(verify_admin_token),
):
    try:
        return await VerificationService(store).get_status(email)
    except DocumentStoreError as e:
        logger.error(f"Failed to read verification for {email}: {e.message}")
        _raise_store_error(e)


@router.post("/{email}/revoke", response_model=VerificationStatusResponse)
async def revoke_verification(
    email: str,
    store: DocumentStore = Depends(get_firestore_client),
    _: bool = Depends(verify_admin_token),
):
    try:
        return await VerificationService(store).revoke(email)
    except DocumentStoreError as e:
        logger.error(f"Failed to revoke verification for {email}: {e.message}")
        _raise_store_error(e)
