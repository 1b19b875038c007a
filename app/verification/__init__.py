"""Blue tick verifications - expiry sweep, grant, revoke and status."""

from app.verification.service import VerificationService
from app.verification.sweeper import VerificationExpirySweeper

__all__ = ["VerificationExpirySweeper", "VerificationService"]
