import asyncio
import logging
from typing import Awaitable, Callable, Optional

from src.browser.browser import RepositoryBrowser
from src.core.models import Repository

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RefreshReconciler:
    """Re-reads a listing after a commit, allowing for the host's read lag.

    One attempt after `first_delay_ms`, and only if it fails a second one
    `second_delay_ms` later. If both fail the old listing stays on screen;
    the commit already succeeded, so nothing is raised.
    """

    def __init__(
        self,
        browser: RepositoryBrowser,
        first_delay_ms: int = 500,
        second_delay_ms: int = 1000,
        sleep: Sleep = asyncio.sleep,
    ):
        self.browser = browser
        self.first_delay_ms = first_delay_ms
        self.second_delay_ms = second_delay_ms
        self._sleep = sleep
        self.task: Optional[asyncio.Task] = None

    async def reconcile(self, repository: Repository, branch: str, path: str) -> bool:
        for delay_ms in (self.first_delay_ms, self.second_delay_ms):
            await self._sleep(delay_ms / 1000)
            if await self.browser.load_contents(repository, path, branch, quiet=True):
                return True
            logger.info(f"Listing of {repository.full_name}@{branch}:/{path} not ready after {delay_ms}ms")

        logger.warning(f"Listing of {repository.full_name}@{branch}:/{path} may be stale")
        return False

    def schedule(self, repository: Repository, branch: str, path: str) -> asyncio.Task:
        """Run `reconcile` in the background; the task is kept on `self.task`."""
        self.task = asyncio.create_task(self.reconcile(repository, branch, path))
        self.task.add_done_callback(self._log_failure)
        return self.task

    @staticmethod
    def _log_failure(task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background refresh failed: {error!r}")
