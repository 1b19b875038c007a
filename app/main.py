from contextlib import asynccontextmanager
from dotenv import load_dotenv
import logging
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.routers.routers import api_router
from app.core.config import settings
from app.core.logging_config import configure_logging
from app.core.sentry import init_sentry
from app.middleware import RequestIDMiddleware
from app.verification.router import limiter
from app.workers.expiry_sweep_worker import ExpirySweepWorker


# Load environment variables
load_dotenv()

# Configure logging with request_id and sweep_id support
configure_logging()

logger = logging.getLogger(__name__)

init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start the optional in-process sweep scheduler on startup and stop it on shutdown.
    """
    logger.info("Starting verification API application...")

    worker = ExpirySweepWorker()

    try:
        if settings.SWEEP_SCHEDULER_ENABLED:
            await worker.start()
            logger.info(
                f"Daily verification sweep scheduled at "
                f"{settings.SWEEP_HOUR_UTC:02d}:{settings.SWEEP_MINUTE_UTC:02d} UTC"
            )
        else:
            logger.info("In-process sweep scheduler disabled (external cron expected)")

        yield

    except Exception:
        logger.exception("Failed to start services")
        raise
    finally:
        logger.info("Shutting down verification API application...")
        try:
            await worker.stop()
        except Exception:
            logger.exception("Error during shutdown")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
    openapi_url="/openapi.json" if settings.is_local else None,
)

# Add rate limiter state
app.state.limiter = limiter

# Add rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add Request ID middleware (must be added first to ensure request_id is available)
app.add_middleware(RequestIDMiddleware)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include all API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health_check():
    try:
        return {
            "fastAPI server": {"status": "healthy"},
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Health check failed: {str(e)}")
