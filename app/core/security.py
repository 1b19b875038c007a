import hmac

from fastapi import Header, HTTPException, status

from app.core.config import settings


def verify_admin_token(x_admin_token: str = Header(...)):
    """
    Verify the admin token from the X-Admin-Token request header.

    Used by the admin console and by external cron jobs that trigger the
    verification cleanup.

    Raises:
        HTTPException: 500 when no token is configured, 401 when it does not match
    """
    if not settings.ADMIN_API_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin token not configured on server",
        )

    if not hmac.compare_digest(x_admin_token, settings.ADMIN_API_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )

    return True
