"""
Run one verification expiry sweep and exit.

Meant for cron / scheduled jobs:

    python sweep.py

Prints the sweep result as JSON. Exit code 0 on success (including partial
completion), 1 when the sweep failed.
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from app.core.logging_config import configure_logging  # noqa: E402
from app.core.sentry import init_sentry  # noqa: E402
from app.firestore.client import FirestoreClient  # noqa: E402
from app.verification.schemas import SweepResult  # noqa: E402
from app.verification.sweeper import VerificationExpirySweeper  # noqa: E402

logger = logging.getLogger(__name__)


async def run_sweep() -> SweepResult:
    return await VerificationExpirySweeper(FirestoreClient()).run()


def main() -> int:
    configure_logging()
    init_sentry()

    result = asyncio.run(run_sweep())
    print(result.model_dump_json())

    if not result.success:
        logger.error(f"Verification sweep failed: {result.error}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
