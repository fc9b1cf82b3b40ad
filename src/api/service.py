import asyncio
import logging
from collections import deque
from typing import Callable, Deque, List, Optional

from src.browser.browser import RepositoryBrowser
from src.core.config import UploaderSettings
from src.core.errors import RemoteApiError, SessionRequiredError, UploaderError
from src.core.models import (
    CommitResult,
    Notification,
    Repository,
    UploadCandidate,
    User,
)
from src.core.session import CredentialStore, Session
from src.remote.github import GitHubHost
from src.remote.host import RemoteHost
from src.upload.builder import CommitBuilder
from src.upload.classifier import FileClassifier
from src.upload.encoder import ContentEncoder
from src.upload.reconciler import RefreshReconciler
from src.upload.state import CommitState, CommitTransition

logger = logging.getLogger(__name__)

HostFactory = Callable[[str], RemoteHost]


class UploaderService:
    """Wires a logged-in session to the browser, commit builder and reconciler.

    Nothing below this class reads the credential store; the session and the
    host built from its token are handed to each component explicitly.
    """

    def __init__(
        self,
        settings: Optional[UploaderSettings] = None,
        host_factory: Optional[HostFactory] = None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings or UploaderSettings()
        self.store = CredentialStore(self.settings.credential_file)
        self.host_factory = host_factory or self._github_host
        self.sleep = sleep
        self.classifier = FileClassifier(self.settings.size_limit, self.settings.max_file_size)
        self.notifications: Deque[Notification] = deque(maxlen=20)

        self.session: Optional[Session] = None
        self.host: Optional[RemoteHost] = None
        self.browser: Optional[RepositoryBrowser] = None
        self.builder: Optional[CommitBuilder] = None
        self.reconciler: Optional[RefreshReconciler] = None
        self.last_transition: Optional[CommitTransition] = None

    def _github_host(self, token: str) -> RemoteHost:
        return GitHubHost(token, base_url=self.settings.api_url, timeout=self.settings.request_timeout)

    def notify(self, notification: Notification):
        self.notifications.append(notification)

    def drain_notifications(self) -> List[Notification]:
        drained = list(self.notifications)
        self.notifications.clear()
        return drained

    # -- session --------------------------------------------------------

    async def restore(self) -> Optional[User]:
        """Log in with the stored credential, if there is one."""
        token = self.store.load()
        if not token:
            return None
        try:
            return await self.login(token, persist=False)
        except RemoteApiError as e:
            logger.warning(f"Stored credential rejected: {e}")
            return None

    async def login(self, token: str, persist: bool = True) -> User:
        host = self.host_factory(token)
        try:
            user = await host.get_authenticated_user()
        except RemoteApiError:
            await host.aclose()
            self.store.clear()
            self.notify(Notification("error", "Authentication failed"))
            raise

        await self._close_host()
        self.session = Session(token=token, user=user)
        self.host = host
        self.browser = RepositoryBrowser(host, notify=self.notify)
        self.builder = CommitBuilder(
            host,
            classifier=self.classifier,
            encoder=ContentEncoder(),
            verify_branch_tip=self.settings.verify_branch_tip,
        )
        self.builder.subscribe(self._record_transition)
        self.reconciler = RefreshReconciler(
            self.browser,
            first_delay_ms=self.settings.first_delay_ms,
            second_delay_ms=self.settings.second_delay_ms,
            sleep=self.sleep,
        )
        if persist:
            self.store.save(token)

        logger.info(f"Logged in as {user.login}")
        self.notify(Notification("success", f"Logged in as {user.login}"))
        try:
            await self.browser.load_repositories()
        except RemoteApiError as e:
            # The login itself stands; the sidebar just stays empty
            logger.warning(f"Repositories unavailable for {user.login}: {e}")
        return user

    async def logout(self):
        self.store.clear()
        await self._close_host()
        self.session = None
        self.browser = None
        self.builder = None
        self.reconciler = None
        self.last_transition = None

    async def close(self):
        await self._close_host()

    async def _close_host(self):
        if self.reconciler is not None and self.reconciler.task is not None:
            self.reconciler.task.cancel()
        if self.host is not None:
            await self.host.aclose()
            self.host = None

    def _record_transition(self, transition: CommitTransition):
        self.last_transition = transition

    # -- browsing -------------------------------------------------------

    def require_browser(self) -> RepositoryBrowser:
        if self.session is None or self.browser is None:
            raise SessionRequiredError("Login required")
        return self.browser

    def require_repository(self) -> Repository:
        browser = self.require_browser()
        if browser.repository is None:
            raise SessionRequiredError("Please select a repository first")
        return browser.repository

    async def select_repository(self, owner: str, name: str) -> bool:
        browser = self.require_browser()
        repository = next(
            (r for r in browser.repositories if r.owner == owner and r.name == name),
            None,
        )
        if repository is None:
            # Not in the cached list (e.g. created since login): refresh once
            await browser.load_repositories()
            repository = next(
                (r for r in browser.repositories if r.owner == owner and r.name == name),
                None,
            )
        if repository is None:
            raise SessionRequiredError(f"Repository {owner}/{name} is not available")
        return await browser.select_repository(repository)

    # -- uploading ------------------------------------------------------

    def check(self, files: List[UploadCandidate]) -> List[List[str]]:
        return [self.classifier.validate(f) for f in files]

    async def upload(self, files: List[UploadCandidate], message: str) -> CommitResult:
        repository = self.require_repository()
        browser = self.require_browser()
        branch = browser.branch or repository.default_branch
        path = browser.path

        try:
            result = await self.builder.commit(files, message, repository, branch, path)
        except UploaderError as e:
            self.notify(Notification("error", f"Upload failed: {e}"))
            raise

        self.notify(Notification("success", f"Successfully uploaded {len(result.blobs)} file(s)"))
        self.reconciler.schedule(repository, branch, path)
        return result

    def status(self) -> CommitTransition:
        if self.last_transition is None:
            return CommitTransition(state=CommitState.IDLE, progress=0.0)
        return self.last_transition
