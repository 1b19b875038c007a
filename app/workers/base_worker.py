import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    def __init__(self, worker_name: str, poll_interval_seconds: float = 60.0):
        """
        Initialize the worker with a name and a stopped task state.

        Parameters:
            worker_name (str): Identifier for the worker instance; used in logging.
            poll_interval_seconds (float): Pause between two calls to tick().
        """
        self.worker_name = worker_name
        self.poll_interval_seconds = poll_interval_seconds
        self.running = False
        self.worker_task: Optional[asyncio.Task] = None

    async def start(self):
        """
        Start the worker's background loop.

        If the worker is already running, no action is taken.
        """
        if self.running:
            logger.warning(f"Worker {self.worker_name} is already running")
            return

        self.running = True
        self.worker_task = asyncio.create_task(self._run_worker())
        logger.info(f"Worker {self.worker_name} started")

    async def stop(self):
        """
        Stop the worker loop and cancel its background task.
        """
        if not self.running:
            return

        self.running = False
        if self.worker_task:
            self.worker_task.cancel()
            try:
                await self.worker_task
            except asyncio.CancelledError:
                pass

        logger.info(f"Worker {self.worker_name} stopped")

    async def _run_worker(self):
        """
        Call tick() every poll interval while the worker is running.

        Exceptions from a single tick are logged and do not stop the loop.
        Cancellation exits immediately.
        """
        while self.running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception(f"Worker {self.worker_name} tick failed")

            try:
                await asyncio.sleep(self.poll_interval_seconds)
            except asyncio.CancelledError:
                break

    @abstractmethod
    async def tick(self):
        """One iteration of the worker's periodic job."""
