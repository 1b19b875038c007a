# Central API router include file
from fastapi import APIRouter

from app.verification.router import router as verification_router

# Create main API router
api_router = APIRouter()

api_router.include_router(verification_router)
